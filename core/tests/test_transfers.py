"""
Transfer workflow tests.

Covers the lifecycle scenarios (request, accept with admission handover,
complete, cancel), rejection of illegal and repeated transitions, the
duplicate-request rule and the degraded accept whose admission write
fails.
"""
import pytest
from django.db import DatabaseError
from django.db.models import ProtectedError
from rest_framework.exceptions import NotFound, PermissionDenied

from core.exceptions import Conflict, InvalidState
from core.models import AuditEvent, HealthRecord, Patient, Transfer
from core.services import transfers as svc
from core.services.actors import resolve_actor
from core.services.health_records import create_health_record, list_health_records

pytestmark = pytest.mark.django_db


def _request(hospital, patient, to_hospital, transfer_type=Transfer.TYPE_EMERGENCY, reason=None):
    return svc.request_transfer(
        resolve_actor(hospital),
        patient_id=patient.id,
        to_hospital_id=to_hospital.id,
        transfer_type=transfer_type,
        reason=reason,
    )


def test_request_creates_requested_transfer(hospital_a, hospital_b, patient):
    t = _request(hospital_a, patient, hospital_b, reason='Needs ICU bed')
    assert t.from_hospital_id == hospital_a.id
    assert t.to_hospital_id == hospital_b.id
    assert t.status == Transfer.STATUS_REQUESTED
    assert t.transfer_type == Transfer.TYPE_EMERGENCY
    assert t.accepted_at is None and t.completed_at is None
    assert AuditEvent.objects.filter(action='transfer_request', object_id=t.id).exists()


def test_accept_by_other_hospital_is_forbidden(hospital_a, hospital_b, hospital_c, patient):
    t = _request(hospital_a, patient, hospital_b)
    with pytest.raises(PermissionDenied) as exc:
        svc.accept_transfer(resolve_actor(hospital_c), t.id)
    assert 'receiving hospital' in str(exc.value.detail)
    t.refresh_from_db()
    assert t.status == Transfer.STATUS_REQUESTED


def test_accept_moves_admission_to_receiving_hospital(hospital_a, hospital_b, patient):
    t = _request(hospital_a, patient, hospital_b)
    outcome = svc.accept_transfer(resolve_actor(hospital_b), t.id)

    assert outcome.admission.ok is True
    assert outcome.transfer.status == Transfer.STATUS_ACCEPTED
    assert outcome.transfer.accepted_at is not None
    patient.refresh_from_db()
    assert patient.current_hospital_id == hospital_b.id


def test_doctor_at_receiving_hospital_completes(hospital_a, hospital_b, doctor_b, patient):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    done = svc.complete_transfer(resolve_actor(doctor_b), t.id)
    assert done.status == Transfer.STATUS_COMPLETED
    assert done.completed_at is not None
    assert done.accepted_at is not None


def test_second_request_while_accepted_conflicts(hospital_a, hospital_b, hospital_c, patient):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    with pytest.raises(Conflict) as exc:
        _request(hospital_a, patient, hospital_c)
    assert '1 active transfer request(s)' in str(exc.value.detail)


def test_handover_redirects_health_record_access(hospital_a, hospital_b, doctor_a, doctor_b, patient, patient_user):
    before = create_health_record(resolve_actor(doctor_a), patient, heart_rate=72)
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    patient.refresh_from_db()

    # the patient keeps reading their own history
    own = list(list_health_records(resolve_actor(patient_user), patient))
    assert [r.id for r in own] == [before.id]

    # the sending hospital's doctor can no longer write
    with pytest.raises(PermissionDenied):
        create_health_record(resolve_actor(doctor_a), patient, heart_rate=80)
    with pytest.raises(PermissionDenied):
        list_health_records(resolve_actor(doctor_a), patient)

    # the receiving hospital's doctor now can
    create_health_record(resolve_actor(doctor_b), patient, heart_rate=75)
    assert HealthRecord.objects.filter(patient=patient).count() == 2


def test_accept_twice_is_invalid_state(hospital_a, hospital_b, patient, monkeypatch):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)

    calls = []
    monkeypatch.setattr(svc, '_apply_admission', lambda *a: calls.append(a) or 1)
    with pytest.raises(InvalidState) as exc:
        svc.accept_transfer(resolve_actor(hospital_b), t.id)
    assert 'Current status: accepted' in str(exc.value.detail)
    assert calls == []


def test_lost_race_on_accept_reports_invalid_state(hospital_a, hospital_b, patient, monkeypatch):
    t = _request(hospital_a, patient, hospital_b)
    stale = Transfer.objects.select_related('patient').get(id=t.id)
    # another request cancels between the status check and the write
    Transfer.objects.filter(id=t.id).update(status=Transfer.STATUS_CANCELLED)
    monkeypatch.setattr(svc, '_load_transfer', lambda _id: stale)

    with pytest.raises(InvalidState) as exc:
        svc.accept_transfer(resolve_actor(hospital_b), t.id)
    assert 'cancelled' in str(exc.value.detail)
    patient.refresh_from_db()
    assert patient.current_hospital_id == hospital_a.id


@pytest.mark.parametrize('advance_to', [Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED])
def test_cancel_after_accept_names_current_status(hospital_a, hospital_b, patient, advance_to):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    if advance_to == Transfer.STATUS_COMPLETED:
        svc.complete_transfer(resolve_actor(hospital_b), t.id)

    with pytest.raises(InvalidState) as exc:
        svc.cancel_transfer(resolve_actor(hospital_a), t.id)
    assert f'Cannot cancel transfer with status: {advance_to}' in str(exc.value.detail)


def test_cancel_only_by_sending_hospital(hospital_a, hospital_b, patient):
    t = _request(hospital_a, patient, hospital_b)
    with pytest.raises(PermissionDenied):
        svc.cancel_transfer(resolve_actor(hospital_b), t.id)
    cancelled = svc.cancel_transfer(resolve_actor(hospital_a), t.id)
    assert cancelled.status == Transfer.STATUS_CANCELLED
    # cancelled is terminal
    with pytest.raises(InvalidState):
        svc.accept_transfer(resolve_actor(hospital_b), t.id)


def test_complete_requires_accepted(hospital_a, hospital_b, patient):
    t = _request(hospital_a, patient, hospital_b)
    with pytest.raises(InvalidState) as exc:
        svc.complete_transfer(resolve_actor(hospital_b), t.id)
    assert 'Transfer cannot be completed. Current status: requested' in str(exc.value.detail)


def test_complete_by_unrelated_doctor_forbidden(hospital_a, hospital_b, doctor_c, patient):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    with pytest.raises(PermissionDenied):
        svc.complete_transfer(resolve_actor(doctor_c), t.id)


def test_complete_by_patient_forbidden(hospital_a, hospital_b, patient, patient_user):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    with pytest.raises(PermissionDenied):
        svc.complete_transfer(resolve_actor(patient_user), t.id)


def test_status_never_moves_backward(hospital_a, hospital_b, patient):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    svc.complete_transfer(resolve_actor(hospital_a), t.id)
    for op, who in ((svc.accept_transfer, hospital_b), (svc.complete_transfer, hospital_b),
                    (svc.cancel_transfer, hospital_a)):
        with pytest.raises(InvalidState):
            op(resolve_actor(who), t.id)
    t.refresh_from_db()
    assert t.status == Transfer.STATUS_COMPLETED


def test_transition_table():
    assert svc.can_transition(Transfer.STATUS_REQUESTED, Transfer.STATUS_ACCEPTED)
    assert svc.can_transition(Transfer.STATUS_REQUESTED, Transfer.STATUS_CANCELLED)
    assert svc.can_transition(Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED)
    assert not svc.can_transition(Transfer.STATUS_REQUESTED, Transfer.STATUS_COMPLETED)
    assert not svc.can_transition(Transfer.STATUS_ACCEPTED, Transfer.STATUS_CANCELLED)
    assert not svc.can_transition(Transfer.STATUS_COMPLETED, Transfer.STATUS_ACCEPTED)


# ---------------------------------------------------------------------------
# RequestTransfer validation
# ---------------------------------------------------------------------------

def test_duplicate_request_to_same_destination(hospital_a, hospital_b, patient):
    _request(hospital_a, patient, hospital_b)
    with pytest.raises(Conflict) as exc:
        _request(hospital_a, patient, hospital_b, transfer_type=Transfer.TYPE_NON_EMERGENCY)
    assert 'already exists and is pending' in str(exc.value.detail)


def test_pending_request_blocks_other_destinations(hospital_a, hospital_b, hospital_c, patient):
    _request(hospital_a, patient, hospital_b)
    with pytest.raises(Conflict):
        _request(hospital_a, patient, hospital_c)


def test_new_request_allowed_after_cancel(hospital_a, hospital_b, hospital_c, patient):
    first = _request(hospital_a, patient, hospital_b)
    svc.cancel_transfer(resolve_actor(hospital_a), first.id)
    second = _request(hospital_a, patient, hospital_c)
    assert second.status == Transfer.STATUS_REQUESTED


def test_request_for_patient_admitted_elsewhere(hospital_b, hospital_c, patient):
    with pytest.raises(InvalidState) as exc:
        _request(hospital_b, patient, hospital_c)
    assert 'not admitted to your hospital' in str(exc.value.detail)


def test_request_to_self_rejected(hospital_a, patient):
    with pytest.raises(InvalidState):
        _request(hospital_a, patient, hospital_a)


def test_request_requires_hospital_role(doctor_a, hospital_b, patient):
    with pytest.raises(PermissionDenied):
        _request(doctor_a, patient, hospital_b)


def test_request_unknown_patient_or_destination(hospital_a, hospital_b, patient, doctor_b):
    with pytest.raises(NotFound):
        svc.request_transfer(resolve_actor(hospital_a), patient_id=999999, to_hospital_id=hospital_b.id,
                             transfer_type=Transfer.TYPE_EMERGENCY)
    # a doctor is not a hospital
    with pytest.raises(NotFound):
        _request(hospital_a, patient, doctor_b)


# ---------------------------------------------------------------------------
# Degraded accept and reconciliation
# ---------------------------------------------------------------------------

def test_failed_admission_is_reported_not_raised(hospital_a, hospital_b, patient, monkeypatch):
    t = _request(hospital_a, patient, hospital_b)

    def boom(*args):
        raise DatabaseError('patients table is locked')

    monkeypatch.setattr(svc, '_apply_admission', boom)
    outcome = svc.accept_transfer(resolve_actor(hospital_b), t.id)

    assert outcome.transfer.status == Transfer.STATUS_ACCEPTED
    assert outcome.admission.ok is False
    assert 'locked' in outcome.admission.reason
    patient.refresh_from_db()
    assert patient.current_hospital_id == hospital_a.id
    event = AuditEvent.objects.get(action='transfer_accept', object_id=t.id)
    assert event.detail['admissionOk'] is False


def test_reconcile_repairs_degraded_accept(hospital_a, hospital_b, patient, monkeypatch):
    t = _request(hospital_a, patient, hospital_b)
    real_apply = svc._apply_admission

    def boom(*args):
        raise DatabaseError('timeout')

    monkeypatch.setattr(svc, '_apply_admission', boom)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    monkeypatch.setattr(svc, '_apply_admission', real_apply)

    results = svc.reconcile_admissions()
    assert [(tr.id, r.ok) for tr, r in results] == [(t.id, True)]
    patient.refresh_from_db()
    assert patient.current_hospital_id == hospital_b.id
    # nothing left to do
    assert svc.reconcile_admissions() == []


def test_reconcile_leaves_later_admissions_alone(hospital_a, hospital_b, hospital_c, patient, monkeypatch):
    t = _request(hospital_a, patient, hospital_b)

    def boom(*args):
        raise DatabaseError('deadlock detected')

    monkeypatch.setattr(svc, '_apply_admission', boom)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    monkeypatch.undo()

    # patient was admitted directly somewhere else in the meantime
    svc.admit_patient(resolve_actor(hospital_c), patient.id)
    assert svc.reconcile_admissions() == []
    patient.refresh_from_db()
    assert patient.current_hospital_id == hospital_c.id


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def test_sending_hospital_keeps_transfer_visibility(hospital_a, hospital_b, hospital_c, patient):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    assert svc.get_transfer(resolve_actor(hospital_a), t.id).id == t.id
    with pytest.raises(PermissionDenied):
        svc.get_transfer(resolve_actor(hospital_c), t.id)


def test_list_transfers_per_role(hospital_a, hospital_b, hospital_c, doctor_a, doctor_c, patient, patient_user,
                                 admin_user):
    t = _request(hospital_a, patient, hospital_b)

    def ids(user):
        return [x.id for x in svc.list_transfers(resolve_actor(user))]

    assert ids(hospital_a) == [t.id]
    assert ids(hospital_b) == [t.id]
    assert ids(hospital_c) == []
    assert ids(patient_user) == [t.id]
    assert ids(admin_user) == []
    # doctors only see transfers once accepted
    assert ids(doctor_a) == []
    svc.accept_transfer(resolve_actor(hospital_b), t.id)
    assert ids(doctor_a) == [t.id]
    assert ids(doctor_c) == []
    assert [x.id for x in svc.list_transfers(resolve_actor(hospital_a), status='accepted')] == [t.id]
    assert list(svc.list_transfers(resolve_actor(hospital_a), status='requested')) == []


def test_transfer_history_in_request_order(hospital_a, hospital_b, hospital_c, patient, patient_user):
    first = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), first.id)
    svc.complete_transfer(resolve_actor(hospital_b), first.id)
    second = _request(hospital_b, patient, hospital_c)

    history = list(svc.transfer_history(resolve_actor(patient_user), patient.id))
    assert [t.id for t in history] == [first.id, second.id]
    with pytest.raises(PermissionDenied):
        svc.transfer_history(resolve_actor(hospital_a), patient.id)


def test_admit_patient_sets_admission(hospital_b, patient_user):
    p = Patient.objects.create(user=patient_user)
    admitted = svc.admit_patient(resolve_actor(hospital_b), p.id)
    assert admitted.current_hospital_id == hospital_b.id
    assert AuditEvent.objects.filter(action='patient_admit', object_id=p.id).exists()


def test_hospitals_with_transfer_history_cannot_be_deleted(hospital_a, hospital_b, patient, patient_user):
    t = _request(hospital_a, patient, hospital_b)
    svc.accept_transfer(resolve_actor(hospital_b), t.id)

    with pytest.raises(ProtectedError):
        hospital_b.delete()
    with pytest.raises(ProtectedError):
        hospital_a.delete()

    assert Transfer.objects.filter(id=t.id).exists()
    history = svc.transfer_history(resolve_actor(patient_user), patient.id)
    assert [(h.from_hospital_id, h.to_hospital_id) for h in history] == [(hospital_a.id, hospital_b.id)]
