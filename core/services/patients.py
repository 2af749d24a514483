from typing import Optional

from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound, PermissionDenied

from core.models import Patient, User
from core.services.actors import Actor, DoctorActor, HospitalActor, PatientActor


def ensure_patient_record(actor: Actor) -> Patient:
    """Return the caller's patient row, creating it on first use."""
    if not isinstance(actor, PatientActor):
        raise PermissionDenied('Only patients can have patient records')
    patient = Patient.objects.filter(user_id=actor.id).first()
    if patient:
        return patient
    try:
        with transaction.atomic():
            return Patient.objects.create(user_id=actor.id)
    except IntegrityError:
        # created concurrently
        return Patient.objects.get(user_id=actor.id)


def get_patient(patient_id) -> Patient:
    patient = Patient.objects.select_related('user', 'current_hospital').filter(id=patient_id).first()
    if not patient:
        raise NotFound('Patient not found')
    return patient


def list_admitted_patients(actor: Actor, *, q: Optional[str] = None):
    """Patients currently admitted at the caller's hospital."""
    if isinstance(actor, HospitalActor):
        hospital_id = actor.id
    elif isinstance(actor, DoctorActor):
        hospital_id = actor.hospital_id
    else:
        raise PermissionDenied('Only hospitals and doctors can list admitted patients')
    qs = Patient.objects.select_related('user', 'current_hospital')
    if hospital_id is None:
        return qs.none()
    qs = qs.filter(current_hospital_id=hospital_id)
    if q:
        qs = qs.filter(user__full_name__icontains=q) | qs.filter(user__email__icontains=q)
    return qs.order_by('user__full_name', 'id')


def find_patient_by_email(actor: Actor, email: str) -> Patient:
    """Look up a patient by login email so a hospital can admit them."""
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Only hospitals can search patients')
    email = (email or '').strip().lower()
    user = User.objects.filter(email__iexact=email, role=User.ROLE_PATIENT).first()
    if not user:
        raise NotFound('No patient account found with that email')
    patient, _ = Patient.objects.get_or_create(user=user)
    return Patient.objects.select_related('user', 'current_hospital').get(id=patient.id)


def patient_to_dict(p: Patient) -> dict:
    return {
        'id': p.id,
        'userId': p.user_id,
        'name': p.user.display_name(),
        'email': p.user.email,
        'phone': p.user.phone,
        'currentHospitalId': p.current_hospital_id,
        'currentHospitalName': p.current_hospital.display_name() if p.current_hospital_id else None,
        'dateOfBirth': p.date_of_birth.isoformat() if p.date_of_birth else None,
        'gender': p.gender or None,
        'address': p.address or None,
        'emergencyContact': p.emergency_contact or None,
    }
