import logging
from typing import Optional

from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from core.models import HealthRecord, Patient
from core.services.access import can_record_vitals, ensure_patient_data_access
from core.services.actors import Actor, DoctorActor, PatientActor
from core.services.audit import try_log_action

logger = logging.getLogger(__name__)

VITAL_FIELDS = (
    'blood_pressure_systolic',
    'blood_pressure_diastolic',
    'heart_rate',
    'sugar_level',
)


def check_vitals(values: dict) -> None:
    """Blood pressure comes as a pair, and a record holds at least one vital."""
    if (values.get('blood_pressure_systolic') is None) != (values.get('blood_pressure_diastolic') is None):
        raise ValidationError({'detail': 'Blood pressure needs both systolic and diastolic values'})
    if all(values.get(k) is None for k in VITAL_FIELDS):
        raise ValidationError({'detail': 'At least one vital sign is required'})


def _ensure_can_modify(actor: Actor, record: HealthRecord) -> None:
    """The owning patient, or a doctor at the hospital the patient is admitted to."""
    patient = record.patient
    if isinstance(actor, PatientActor):
        if patient.user_id != actor.id:
            raise PermissionDenied('Access denied')
    elif isinstance(actor, DoctorActor):
        if actor.hospital_id is None or patient.current_hospital_id != actor.hospital_id:
            raise PermissionDenied('Access denied. Patient is not at your hospital.')
    else:
        raise PermissionDenied('Only patients and doctors can change health records')


def create_health_record(actor: Actor, patient: Patient, *, recorded_at=None, **vitals) -> HealthRecord:
    if not can_record_vitals(actor, patient):
        raise PermissionDenied('Only doctors at the admitting hospital can add health records')
    values = {k: vitals.get(k) for k in VITAL_FIELDS}
    check_vitals(values)
    record = HealthRecord.objects.create(
        patient=patient,
        recorded_at=recorded_at or timezone.now(),
        recorded_by_id=actor.id,
        **values,
    )
    logger.info('health record %s added for patient %s by doctor %s', record.id, patient.id, actor.id)
    try_log_action(user_id=actor.id, action='health_record_create', object_type='health_record',
                   object_id=record.id, detail={'patientId': patient.id})
    return record


def list_health_records(actor: Actor, patient: Patient, *, limit: Optional[int] = None):
    ensure_patient_data_access(actor, patient)
    qs = HealthRecord.objects.filter(patient=patient).order_by('-recorded_at', '-id')
    if limit:
        qs = qs[:limit]
    return qs


def update_health_record(actor: Actor, record: HealthRecord, *, recorded_at=None, **vitals) -> HealthRecord:
    """Overwrite the given vitals; omitted ones keep their stored value."""
    _ensure_can_modify(actor, record)
    unknown = set(vitals) - set(VITAL_FIELDS)
    if unknown:
        raise ValidationError({'detail': f'Unknown fields: {", ".join(sorted(unknown))}'})
    values = {k: getattr(record, k) for k in VITAL_FIELDS}
    values.update(vitals)
    check_vitals(values)

    for k, v in values.items():
        setattr(record, k, v)
    update_fields = list(VITAL_FIELDS)
    if recorded_at is not None:
        record.recorded_at = recorded_at
        update_fields.append('recorded_at')
    record.save(update_fields=update_fields)

    logger.info('health record %s updated by user %s', record.id, actor.id)
    try_log_action(user_id=actor.id, action='health_record_update', object_type='health_record',
                   object_id=record.id, detail={'patientId': record.patient_id, 'fields': sorted(vitals)})
    return record


def delete_health_record(actor: Actor, record: HealthRecord) -> None:
    _ensure_can_modify(actor, record)
    patient = record.patient
    record_id = record.id
    record.delete()
    try_log_action(user_id=actor.id, action='health_record_delete', object_type='health_record',
                   object_id=record_id, detail={'patientId': patient.id})


def health_record_to_dict(r: HealthRecord) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'bloodPressureSystolic': r.blood_pressure_systolic,
        'bloodPressureDiastolic': r.blood_pressure_diastolic,
        'heartRate': r.heart_rate,
        'sugarLevel': float(r.sugar_level) if r.sugar_level is not None else None,
        'recordedAt': r.recorded_at.isoformat() if r.recorded_at else None,
        'recordedBy': r.recorded_by_id,
    }
