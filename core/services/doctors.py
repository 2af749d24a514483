from typing import Optional

from rest_framework.exceptions import PermissionDenied

from core.models import User
from core.services.accounts import create_user
from core.services.actors import Actor, DoctorActor, HospitalActor
from core.services.audit import try_log_action


def _hospital_of(actor: Actor) -> int:
    if isinstance(actor, HospitalActor):
        return actor.id
    if isinstance(actor, DoctorActor) and actor.hospital_id is not None:
        return actor.hospital_id
    raise PermissionDenied('Forbidden: Hospital access required')


def list_doctors(actor: Actor, *, q: Optional[str] = None):
    qs = User.objects.filter(role=User.ROLE_DOCTOR, hospital_id=_hospital_of(actor))
    if q:
        qs = qs.filter(full_name__icontains=q) | qs.filter(email__icontains=q)
    return qs.order_by('full_name', 'id')


def create_doctor(actor: Actor, *, email: str, password: str, full_name: str = '',
                  phone: Optional[str] = None) -> User:
    """Create a doctor account employed by the calling hospital."""
    if not isinstance(actor, HospitalActor):
        raise PermissionDenied('Forbidden: Hospital access required')
    hospital = User.objects.get(id=actor.id)
    doctor = create_user(email=email, password=password, role=User.ROLE_DOCTOR, full_name=full_name,
                         phone=phone, hospital=hospital)
    try_log_action(user_id=actor.id, action='doctor_create', object_type='user', object_id=doctor.id)
    return doctor
