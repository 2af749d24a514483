"""
Read-time access predicates.

Nothing here is cached or stored: each check reads the patient's
``current_hospital_id`` as it is now, so accepting a transfer hands over
visibility of health records and reports the moment admission moves.
"""
from __future__ import annotations

from rest_framework.exceptions import PermissionDenied

from core.models import Patient, Transfer
from core.services.actors import Actor, AdminActor, DoctorActor, HospitalActor, PatientActor


def can_access_patient_data(actor: Actor, patient: Patient) -> bool:
    """Whether ``actor`` may read the patient's health records and reports."""
    if isinstance(actor, PatientActor):
        return patient.user_id == actor.id
    if isinstance(actor, HospitalActor):
        return patient.current_hospital_id == actor.id
    if isinstance(actor, DoctorActor):
        return actor.hospital_id is not None and patient.current_hospital_id == actor.hospital_id
    if isinstance(actor, AdminActor):
        return False
    raise TypeError(f'not an actor: {actor!r}')


def can_record_vitals(actor: Actor, patient: Patient) -> bool:
    """Only doctors at the admitting hospital write health records."""
    if isinstance(actor, DoctorActor):
        return actor.hospital_id is not None and patient.current_hospital_id == actor.hospital_id
    return False


def can_manage_reports(actor: Actor, patient: Patient) -> bool:
    """Doctors and the hospital account at the admitting hospital upload/delete reports."""
    if isinstance(actor, DoctorActor):
        return actor.hospital_id is not None and patient.current_hospital_id == actor.hospital_id
    if isinstance(actor, HospitalActor):
        return patient.current_hospital_id == actor.id
    return False


def can_view_transfer(actor: Actor, transfer: Transfer) -> bool:
    """Transfer visibility; spans both hospitals so the sender keeps it after handover.

    Doctors only see transfers their own hospital is a side of, and only
    once the transfer has been accepted.
    """
    if isinstance(actor, PatientActor):
        return transfer.patient.user_id == actor.id
    if isinstance(actor, HospitalActor):
        return actor.id in (transfer.from_hospital_id, transfer.to_hospital_id)
    if isinstance(actor, DoctorActor):
        if transfer.status not in (Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED):
            return False
        return actor.hospital_id is not None and actor.hospital_id in (
            transfer.from_hospital_id, transfer.to_hospital_id
        )
    if isinstance(actor, AdminActor):
        return False
    raise TypeError(f'not an actor: {actor!r}')


def ensure_patient_data_access(actor: Actor, patient: Patient) -> None:
    if not can_access_patient_data(actor, patient):
        raise PermissionDenied('Access denied to this patient\'s health data')


def ensure_transfer_visible(actor: Actor, transfer: Transfer) -> None:
    if not can_view_transfer(actor, transfer):
        raise PermissionDenied('You do not have access to this transfer')
