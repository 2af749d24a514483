"""
Explicit caller identities for the workflow services.

Every service call takes an ``Actor`` rather than reading a session.  The
union is closed: ``PatientActor | DoctorActor | HospitalActor | AdminActor``,
built once per request from the authenticated user by ``resolve_actor``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from core.models import User


@dataclass(frozen=True)
class PatientActor:
    id: int


@dataclass(frozen=True)
class DoctorActor:
    id: int
    hospital_id: Optional[int]


@dataclass(frozen=True)
class HospitalActor:
    id: int


@dataclass(frozen=True)
class AdminActor:
    id: int


Actor = Union[PatientActor, DoctorActor, HospitalActor, AdminActor]


def resolve_actor(user) -> Actor:
    """Return the ``Actor`` for an authenticated user.

    Raises ``NotAuthenticated`` when there is no resolvable identity and
    ``PermissionDenied`` for a role outside the known set.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        raise NotAuthenticated('Unauthorized')
    role = getattr(user, 'role', None)
    if role == User.ROLE_PATIENT:
        return PatientActor(id=user.id)
    if role == User.ROLE_DOCTOR:
        return DoctorActor(id=user.id, hospital_id=user.hospital_id)
    if role == User.ROLE_HOSPITAL:
        return HospitalActor(id=user.id)
    if role == User.ROLE_ADMIN:
        return AdminActor(id=user.id)
    raise PermissionDenied(f'Unknown role: {role}')


def actor_for_request(request) -> Actor:
    return resolve_actor(getattr(request, 'user', None))


def role_of(actor: Actor) -> str:
    if isinstance(actor, PatientActor):
        return User.ROLE_PATIENT
    if isinstance(actor, DoctorActor):
        return User.ROLE_DOCTOR
    if isinstance(actor, HospitalActor):
        return User.ROLE_HOSPITAL
    if isinstance(actor, AdminActor):
        return User.ROLE_ADMIN
    raise TypeError(f'not an actor: {actor!r}')
