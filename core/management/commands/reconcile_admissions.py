from django.core.management.base import BaseCommand

from core.services.transfers import reconcile_admissions


class Command(BaseCommand):
    help = ("Re-apply the admission handover for accepted transfers whose "
            "patient is still admitted at the sending hospital.")

    def handle(self, *args, **options):
        results = reconcile_admissions()
        failed = 0
        for transfer, result in results:
            if result.ok:
                self.stdout.write(self.style.SUCCESS(
                    f"transfer {transfer.id}: patient {transfer.patient_id} -> hospital {transfer.to_hospital_id}"
                ))
            else:
                failed += 1
                self.stdout.write(self.style.ERROR(f"transfer {transfer.id}: {result.reason}"))
        self.stdout.write(f"reconciled {len(results) - failed}, failed {failed}")
