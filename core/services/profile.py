"""
Self-service profile: contact details for every role, demographics for
patients, and password changes.
"""
import logging
from typing import Optional

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import ValidationError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from core.models import Patient, User
from core.services.accounts import user_to_dict
from core.services.audit import try_log_action

logger = logging.getLogger(__name__)

USER_FIELDS = ('full_name', 'phone')
PATIENT_FIELDS = ('date_of_birth', 'gender', 'address', 'emergency_contact')


def _patient_row(user: User) -> Optional[Patient]:
    if user.role != User.ROLE_PATIENT:
        return None
    patient, _ = Patient.objects.get_or_create(user=user)
    return patient


def profile_to_dict(user: User) -> dict:
    data = user_to_dict(user)
    data['fullName'] = user.full_name
    patient = _patient_row(user)
    if patient is not None:
        data['patient'] = {
            'id': patient.id,
            'currentHospitalId': patient.current_hospital_id,
            'dateOfBirth': patient.date_of_birth.isoformat() if patient.date_of_birth else None,
            'gender': patient.gender or None,
            'address': patient.address or None,
            'emergencyContact': patient.emergency_contact or None,
        }
    return data


def update_profile(user: User, **fields) -> User:
    """Update the caller's own contact details and, for patients, demographics.

    Admission state, role and email are never writable here.
    """
    unknown = set(fields) - set(USER_FIELDS) - set(PATIENT_FIELDS)
    if unknown:
        raise ValidationError({'detail': f'Unknown fields: {", ".join(sorted(unknown))}'})
    patient_fields = {k: v for k, v in fields.items() if k in PATIENT_FIELDS}
    patient = _patient_row(user)
    if patient_fields and patient is None:
        raise ValidationError({'detail': 'Only patients have demographic details'})

    with transaction.atomic():
        user_fields = {k: v for k, v in fields.items() if k in USER_FIELDS}
        if user_fields:
            if 'full_name' in user_fields:
                user.full_name = (user_fields['full_name'] or '').strip()
            if 'phone' in user_fields:
                user.phone = (user_fields['phone'] or '').strip() or None
            user.save(update_fields=list(user_fields))
        if patient_fields:
            for k, v in patient_fields.items():
                # text columns are not nullable
                setattr(patient, k, v if k == 'date_of_birth' else (v or '').strip())
            patient.save(update_fields=list(patient_fields))

    try_log_action(user_id=user.id, action='profile_update', object_type='user', object_id=user.id,
                   detail={'fields': sorted(fields)})
    return user


def change_password(user: User, *, current_password: str, new_password: str) -> int:
    """Set a new password and revoke every session issued before it.

    Returns the number of refresh tokens blacklisted.
    """
    if not user.check_password(current_password):
        raise ValidationError({'currentPassword': 'Current password is incorrect'})
    if current_password == new_password:
        raise ValidationError({'newPassword': 'New password must differ from the current one'})
    try:
        validate_password(new_password, user=user)
    except DjangoValidationError as e:
        raise ValidationError({'newPassword': e.messages})

    with transaction.atomic():
        user.set_password(new_password)
        user.save(update_fields=['password'])
        Token.objects.filter(user=user).delete()
        revoked = 0
        for token in OutstandingToken.objects.filter(user=user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            revoked += int(created)

    logger.info('password changed for user %s (%s refresh tokens revoked)', user.id, revoked)
    try_log_action(user_id=user.id, action='password_change', object_type='user', object_id=user.id,
                   detail={'revoked': revoked})
    return revoked
