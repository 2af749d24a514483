from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.db import transaction

from core.models import Patient, User

DEMO_PASSWORD = "CareBridge-demo-1"

# (email, role, full name, employing hospital email)
DEMO_SET = [
    ("admin@carebridge.test", User.ROLE_ADMIN, "Platform Admin", None),
    ("city@carebridge.test", User.ROLE_HOSPITAL, "City General Hospital", None),
    ("county@carebridge.test", User.ROLE_HOSPITAL, "County Medical Center", None),
    ("dr.lee@carebridge.test", User.ROLE_DOCTOR, "Dr. Lee", "city@carebridge.test"),
    ("dr.patel@carebridge.test", User.ROLE_DOCTOR, "Dr. Patel", "county@carebridge.test"),
    ("pat@carebridge.test", User.ROLE_PATIENT, "Pat Example", None),
]


class Command(BaseCommand):
    help = f"Ensure demo accounts exist with password={DEMO_PASSWORD} (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--admit-to", default="city@carebridge.test",
                            help="Hospital email the demo patient is admitted to.")

    @transaction.atomic
    def handle(self, *args, **opts):
        users = {}
        for email, role, name, hospital_email in DEMO_SET:
            u, created = User.objects.get_or_create(
                username=email,
                defaults={"email": email, "role": role, "full_name": name,
                          "password": make_password(DEMO_PASSWORD), "is_active": True},
            )
            if not created:
                # roles are fixed once created; only reset credentials
                u.password = make_password(DEMO_PASSWORD)
                u.is_active = True
                u.save(update_fields=["password", "is_active"])
            if hospital_email and u.hospital_id != users[hospital_email].id:
                u.hospital = users[hospital_email]
                u.save(update_fields=["hospital"])
            users[email] = u
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({u.role})"))

        patient, _ = Patient.objects.get_or_create(user=users["pat@carebridge.test"])
        hospital = users.get(opts["admit_to"])
        if hospital and patient.current_hospital_id is None:
            Patient.objects.filter(id=patient.id).update(current_hospital=hospital)
            self.stdout.write(f"admitted patient {patient.id} to {hospital.email}")
        self.stdout.write(self.style.SUCCESS("All demo accounts ensured."))
