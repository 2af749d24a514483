from typing import Optional

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.models import Patient, User
from core.services.actors import Actor, AdminActor
from core.services.audit import try_log_action


def normalize_email(email: str) -> str:
    email = (email or '').strip().lower()
    try:
        validate_email(email)
    except DjangoValidationError:
        raise ValidationError({'email': 'Please enter a valid email address (must include @ and domain)'})
    return email


def create_user(*, email: str, password: str, role: str, full_name: str = '', phone: Optional[str] = None,
                hospital: Optional[User] = None) -> User:
    """Create a login for ``role``; the email doubles as the username."""
    email = normalize_email(email)
    if User.objects.filter(username=email).exists() or User.objects.filter(email=email).exists():
        raise ValidationError({'email': f'An account with email {email} already exists'})
    try:
        validate_password(password)
    except DjangoValidationError as e:
        raise ValidationError({'password': e.messages})

    with transaction.atomic():
        user = User.objects.create_user(username=email, email=email, password=password)
        user.role = role
        user.full_name = full_name or ''
        user.phone = phone or None
        user.hospital = hospital if role == User.ROLE_DOCTOR else None
        user.save()
        if role == User.ROLE_PATIENT:
            Patient.objects.create(user=user)
    return user


def register_patient(*, email: str, password: str, full_name: str = '', phone: Optional[str] = None) -> User:
    """Self-service signup; only patient accounts can be created this way."""
    user = create_user(email=email, password=password, role=User.ROLE_PATIENT, full_name=full_name, phone=phone)
    try_log_action(user_id=user.id, action='signup', object_type='user', object_id=user.id)
    return user


def create_account(actor: Actor, *, email: str, password: str, role: str, full_name: str = '',
                   phone: Optional[str] = None, hospital_id: Optional[int] = None) -> User:
    if not isinstance(actor, AdminActor):
        raise PermissionDenied('Forbidden: Admin access required')
    if role not in dict(User.ROLE_CHOICES):
        raise ValidationError({'role': f'Unknown role: {role}'})
    hospital = None
    if role == User.ROLE_DOCTOR:
        if not hospital_id:
            raise ValidationError({'hospitalId': 'Doctors must belong to a hospital'})
        hospital = User.objects.filter(id=hospital_id, role=User.ROLE_HOSPITAL).first()
        if not hospital:
            raise NotFound('Hospital not found')
    user = create_user(email=email, password=password, role=role, full_name=full_name, phone=phone,
                       hospital=hospital)
    try_log_action(user_id=actor.id, action='account_create', object_type='user', object_id=user.id,
                   detail={'role': role})
    return user


def list_hospitals():
    return User.objects.filter(role=User.ROLE_HOSPITAL, is_active=True).order_by('full_name', 'id')


def user_to_dict(u: User) -> dict:
    return {
        'id': u.id,
        'email': u.email,
        'name': u.display_name(),
        'role': u.role,
        'phone': u.phone,
        'hospitalId': u.hospital_id,
    }
