"""
Transfer workflow engine.

Owns the ``Transfer.status`` state machine::

    requested --accept(to_hospital)--> accepted --complete(either side)--> completed
    requested --cancel(from_hospital)--> cancelled

Every transition is written as a compare-and-swap on status
(``UPDATE ... WHERE id = ? AND status = <expected>``); a write that hits
zero rows lost a race and is reported as ``InvalidState``.  Accepting a
transfer also moves the patient's admission to the receiving hospital.
That second write is best-effort: its failure is logged and returned in
``AcceptOutcome.admission`` but never undoes the acceptance.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, List, Tuple

from django.db import DatabaseError, transaction
from django.db.models import F, Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import Conflict, InvalidState
from core.models import Patient, Transfer, User
from core.services.access import ensure_patient_data_access, ensure_transfer_visible
from core.services.actors import Actor, AdminActor, DoctorActor, HospitalActor, PatientActor
from core.services.audit import try_log_action

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Transfer.STATUS_REQUESTED: (Transfer.STATUS_ACCEPTED, Transfer.STATUS_CANCELLED),
    Transfer.STATUS_ACCEPTED: (Transfer.STATUS_COMPLETED,),
    Transfer.STATUS_COMPLETED: (),
    Transfer.STATUS_CANCELLED: (),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if a transfer may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, ())


@dataclass(frozen=True)
class AdmissionResult:
    ok: bool
    reason: Optional[str] = None


@dataclass
class AcceptOutcome:
    transfer: Transfer
    admission: AdmissionResult


def _load_transfer(transfer_id) -> Transfer:
    transfer = (
        Transfer.objects.select_related('patient', 'patient__user', 'from_hospital', 'to_hospital')
        .filter(id=transfer_id)
        .first()
    )
    if not transfer:
        raise NotFound('Transfer not found')
    return transfer


def _swap_status(transfer: Transfer, expected: str, new: str, **fields) -> Transfer:
    if not can_transition(expected, new):
        raise InvalidState(f'Transfer cannot move from {expected} to {new}')
    updated = Transfer.objects.filter(id=transfer.id, status=expected).update(status=new, **fields)
    if updated != 1:
        current = Transfer.objects.filter(id=transfer.id).values_list('status', flat=True).first()
        logger.info('transfer %s: lost %s->%s race (now %s)', transfer.id, expected, new, current)
        raise InvalidState(f'Transfer is no longer {expected}. Current status: {current}')
    transfer.refresh_from_db()
    return transfer


def _apply_admission(patient_id: int, hospital_id: int) -> int:
    """Point the patient's admission at ``hospital_id``; returns rows written."""
    return Patient.objects.filter(id=patient_id).update(current_hospital_id=hospital_id)


def _move_admission(transfer: Transfer) -> AdmissionResult:
    try:
        with transaction.atomic():
            written = _apply_admission(transfer.patient_id, transfer.to_hospital_id)
    except DatabaseError as exc:
        logger.warning(
            'transfer %s accepted but admission of patient %s to hospital %s failed: %s',
            transfer.id, transfer.patient_id, transfer.to_hospital_id, exc,
        )
        return AdmissionResult(ok=False, reason=str(exc))
    if written != 1:
        logger.warning('transfer %s accepted but patient %s no longer exists', transfer.id, transfer.patient_id)
        return AdmissionResult(ok=False, reason='Patient record not found')
    return AdmissionResult(ok=True)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def request_transfer(
    actor: Actor,
    *,
    patient_id: int,
    to_hospital_id: int,
    transfer_type: str,
    reason: Optional[str] = None,
) -> Transfer:
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Only hospitals can create transfer requests')
    if transfer_type not in dict(Transfer.TYPE_CHOICES):
        raise ValidationError({'transferType': f'Unknown transfer type: {transfer_type}'})

    with transaction.atomic():
        # Serialises concurrent requests for the same patient
        patient = Patient.objects.select_for_update().filter(id=patient_id).first()
        if not patient:
            raise NotFound('Patient not found')
        destination = User.objects.filter(id=to_hospital_id, role=User.ROLE_HOSPITAL).first()
        if not destination:
            raise NotFound('Destination hospital not found')
        if destination.id == actor.id:
            raise InvalidState('A patient cannot be transferred to the requesting hospital')

        active = list(
            Transfer.objects.filter(
                patient=patient, from_hospital_id=actor.id, status__in=Transfer.ACTIVE_STATUSES
            )
        )
        if any(t.to_hospital_id == destination.id for t in active):
            raise Conflict('A transfer request for this patient to the selected hospital already exists and is pending.')
        if active:
            raise Conflict(
                f'This patient already has {len(active)} active transfer request(s). '
                'Please wait for them to be completed or cancelled before creating a new one.'
            )
        if patient.current_hospital_id != actor.id:
            raise InvalidState('Patient is not admitted to your hospital')

        transfer = Transfer.objects.create(
            patient=patient,
            from_hospital_id=actor.id,
            to_hospital=destination,
            transfer_type=transfer_type,
            status=Transfer.STATUS_REQUESTED,
            reason=reason or None,
            requested_at=timezone.now(),
        )

    logger.info('transfer %s requested: patient %s %s->%s (%s)',
                transfer.id, patient.id, actor.id, destination.id, transfer_type)
    try_log_action(user_id=actor.id, action='transfer_request', object_type='transfer', object_id=transfer.id,
                   detail={'patientId': patient.id, 'toHospitalId': destination.id, 'type': transfer_type})
    return transfer


def accept_transfer(actor: Actor, transfer_id) -> AcceptOutcome:
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Only hospitals can accept transfers')
    transfer = _load_transfer(transfer_id)
    if transfer.to_hospital_id != actor.id:
        raise PermissionDenied('Only the receiving hospital can accept this transfer')
    if transfer.status != Transfer.STATUS_REQUESTED:
        raise InvalidState(f'Transfer cannot be accepted. Current status: {transfer.status}')

    transfer = _swap_status(
        transfer, Transfer.STATUS_REQUESTED, Transfer.STATUS_ACCEPTED, accepted_at=timezone.now()
    )
    admission = _move_admission(transfer)

    logger.info('transfer %s accepted by hospital %s (admission ok=%s)', transfer.id, actor.id, admission.ok)
    try_log_action(user_id=actor.id, action='transfer_accept', object_type='transfer', object_id=transfer.id,
                   detail={'admissionOk': admission.ok, 'admissionError': admission.reason})
    return AcceptOutcome(transfer=transfer, admission=admission)


def complete_transfer(actor: Actor, transfer_id) -> Transfer:
    if isinstance(actor, HospitalActor):
        side = actor.id
    elif isinstance(actor, DoctorActor):
        side = actor.hospital_id
    else:
        raise PermissionDenied('Only hospitals and doctors can complete transfers')
    transfer = _load_transfer(transfer_id)
    if side is None or side not in (transfer.from_hospital_id, transfer.to_hospital_id):
        raise PermissionDenied('You are not authorized to complete this transfer')
    if transfer.status != Transfer.STATUS_ACCEPTED:
        raise InvalidState(f'Transfer cannot be completed. Current status: {transfer.status}')

    transfer = _swap_status(
        transfer, Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED, completed_at=timezone.now()
    )
    logger.info('transfer %s completed by user %s', transfer.id, actor.id)
    try_log_action(user_id=actor.id, action='transfer_complete', object_type='transfer', object_id=transfer.id)
    return transfer


def cancel_transfer(actor: Actor, transfer_id) -> Transfer:
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Only hospitals can cancel transfer requests')
    transfer = _load_transfer(transfer_id)
    if transfer.from_hospital_id != actor.id:
        raise PermissionDenied('Only the sending hospital can cancel this transfer request')
    if transfer.status != Transfer.STATUS_REQUESTED:
        raise InvalidState(
            f"Cannot cancel transfer with status: {transfer.status}. Only 'requested' transfers can be cancelled."
        )

    transfer = _swap_status(transfer, Transfer.STATUS_REQUESTED, Transfer.STATUS_CANCELLED)
    logger.info('transfer %s cancelled by hospital %s', transfer.id, actor.id)
    try_log_action(user_id=actor.id, action='transfer_cancel', object_type='transfer', object_id=transfer.id)
    return transfer


# ---------------------------------------------------------------------------
# Admission outside the transfer flow
# ---------------------------------------------------------------------------

def admit_patient(actor: Actor, patient_id) -> Patient:
    """Admit a patient directly to the calling hospital."""
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Only hospitals can admit patients')
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    previous = patient.current_hospital_id
    _apply_admission(patient.id, actor.id)
    patient.refresh_from_db()
    logger.info('patient %s admitted to hospital %s (previously %s)', patient.id, actor.id, previous)
    try_log_action(user_id=actor.id, action='patient_admit', object_type='patient', object_id=patient.id,
                   detail={'previousHospitalId': previous})
    return patient


def reconcile_admission(transfer: Transfer) -> Optional[AdmissionResult]:
    """Re-apply the handover of an accepted transfer whose admission never moved.

    Only the patient's most recent accepted transfer is considered, and only
    while the patient is still admitted at that transfer's sending hospital.
    Returns None when there is nothing to do.
    """
    if transfer.status not in (Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED):
        return None
    latest = (
        Transfer.objects.filter(
            patient_id=transfer.patient_id,
            status__in=(Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED),
        )
        .order_by('-accepted_at', '-id')
        .first()
    )
    if latest is None or latest.id != transfer.id:
        return None
    current = Patient.objects.filter(id=transfer.patient_id).values_list('current_hospital_id', flat=True).first()
    if current == transfer.to_hospital_id or current != transfer.from_hospital_id:
        return None
    result = _move_admission(transfer)
    try_log_action(user_id=None, action='admission_reconcile', object_type='transfer', object_id=transfer.id,
                   detail={'ok': result.ok, 'error': result.reason})
    return result


def reconcile_admissions() -> List[Tuple[Transfer, AdmissionResult]]:
    candidates = (
        Transfer.objects.filter(status__in=(Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED))
        .exclude(patient__current_hospital=F('to_hospital'))
        .order_by('id')
    )
    results: List[Tuple[Transfer, AdmissionResult]] = []
    for transfer in candidates:
        result = reconcile_admission(transfer)
        if result is not None:
            results.append((transfer, result))
    return results


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

def get_transfer(actor: Actor, transfer_id) -> Transfer:
    transfer = _load_transfer(transfer_id)
    ensure_transfer_visible(actor, transfer)
    return transfer


def list_transfers(actor: Actor, *, status: Optional[str] = None):
    """Transfers shown on the caller's dashboard, newest first."""
    qs = Transfer.objects.select_related('patient', 'patient__user', 'from_hospital', 'to_hospital')
    if isinstance(actor, PatientActor):
        qs = qs.filter(patient__user_id=actor.id)
    elif isinstance(actor, HospitalActor):
        qs = qs.filter(Q(from_hospital_id=actor.id) | Q(to_hospital_id=actor.id))
    elif isinstance(actor, DoctorActor):
        if actor.hospital_id is None:
            return qs.none()
        qs = qs.filter(
            Q(from_hospital_id=actor.hospital_id) | Q(to_hospital_id=actor.hospital_id),
            status__in=(Transfer.STATUS_ACCEPTED, Transfer.STATUS_COMPLETED),
        )
    elif isinstance(actor, AdminActor):
        return qs.none()
    else:
        raise TypeError(f'not an actor: {actor!r}')
    if status:
        qs = qs.filter(status=status)
    return qs.order_by('-requested_at', '-id')


def transfer_history(actor: Actor, patient_id):
    """A patient's admission history, reconstructed from transfer rows."""
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    ensure_patient_data_access(actor, patient)
    return (
        Transfer.objects.filter(patient=patient)
        .select_related('patient', 'patient__user', 'from_hospital', 'to_hospital')
        .order_by('requested_at', 'id')
    )


def _hospital_dict(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {'id': user.id, 'name': user.display_name(), 'email': user.email}


def transfer_to_dict(t: Transfer) -> dict:
    return {
        'id': t.id,
        'patientId': t.patient_id,
        'patientName': t.patient.user.display_name(),
        'fromHospitalId': t.from_hospital_id,
        'toHospitalId': t.to_hospital_id,
        'fromHospital': _hospital_dict(t.from_hospital),
        'toHospital': _hospital_dict(t.to_hospital),
        'transferType': t.transfer_type,
        'status': t.status,
        'reason': t.reason,
        'requestedAt': t.requested_at.isoformat() if t.requested_at else None,
        'acceptedAt': t.accepted_at.isoformat() if t.accepted_at else None,
        'completedAt': t.completed_at.isoformat() if t.completed_at else None,
    }
