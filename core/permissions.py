"""
Custom permission classes for role based access control.

These only gate an endpoint by the caller's role.  Per-patient and
per-transfer access is decided in ``core.services.access`` at read time.
"""
from rest_framework.permissions import BasePermission

from core.models import User


class _RolePermission(BasePermission):
    roles = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in self.roles)


class IsHospitalRole(_RolePermission):
    """Allow access only to hospital accounts."""
    roles = frozenset({User.ROLE_HOSPITAL})


class IsHospitalOrDoctor(_RolePermission):
    """Hospital accounts and the doctors they employ."""
    roles = frozenset({User.ROLE_HOSPITAL, User.ROLE_DOCTOR})


class IsPatientRole(_RolePermission):
    """Allow access only to users with the patient role."""
    roles = frozenset({User.ROLE_PATIENT})


class IsAdminRole(_RolePermission):
    """Allow access only to users with the admin role."""
    roles = frozenset({User.ROLE_ADMIN})
