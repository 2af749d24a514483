"""
Database models for the CareBridge backend.

These models capture the concepts of the transfer workflow: users and
their roles, patient admission state, hospital-to-hospital transfers,
health data (vitals and uploaded reports) and the per-transfer
coordination messages.  Access to health data is never stored on these
rows; it is derived at read time from ``Patient.current_hospital``.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Custom user model with a role and, for doctors, an employing hospital.

    Hospitals are themselves users with the ``hospital`` role so that a
    hospital account can log in, request and accept transfers.  The role
    is fixed at creation time.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_HOSPITAL = 'hospital'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_HOSPITAL, 'Hospital'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    # Set only for doctors: the hospital account that employs them
    hospital = models.ForeignKey(
        'self',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='doctors',
        limit_choices_to={'role': ROLE_HOSPITAL},
    )

    def display_name(self) -> str:
        return self.full_name or self.get_full_name() or self.email or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    """Admission state and demographics of a patient-role user.

    ``current_hospital`` is the single source of truth for which hospital
    (and which hospital's doctors) may currently see the patient's data.
    It is written only by transfer acceptance and explicit admission.
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_record')
    current_hospital = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='admitted_patients',
        limit_choices_to={'role': User.ROLE_HOSPITAL},
    )
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"patient {self.id} ({self.user.username})"


class Transfer(models.Model):
    """A request to move a patient's admission from one hospital to another.

    Rows are never deleted; together they form the admission history of a
    patient.  Status only moves forward along
    ``requested -> accepted -> completed`` or ``requested -> cancelled``.
    """
    TYPE_EMERGENCY = 'emergency'
    TYPE_NON_EMERGENCY = 'non-emergency'
    TYPE_CHOICES = ((TYPE_EMERGENCY, 'Emergency'), (TYPE_NON_EMERGENCY, 'Non-emergency'))

    STATUS_REQUESTED = 'requested'
    STATUS_ACCEPTED = 'accepted'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (STATUS_REQUESTED, 'Requested'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )
    ACTIVE_STATUSES = (STATUS_REQUESTED, STATUS_ACCEPTED)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='transfers')
    # hospitals with transfer history cannot be deleted, only deactivated
    from_hospital = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.PROTECT, related_name='outgoing_transfers'
    )
    to_hospital = models.ForeignKey(User, on_delete=models.PROTECT, related_name='incoming_transfers')
    transfer_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_NON_EMERGENCY)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_REQUESTED, db_index=True)
    reason = models.TextField(blank=True, null=True)
    requested_at = models.DateTimeField(default=timezone.now)
    accepted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'requested_at'], name='core_transfer_patient_req_idx'),
            models.Index(fields=['from_hospital', 'status'], name='core_transfer_from_status_idx'),
            models.Index(fields=['to_hospital', 'status'], name='core_transfer_to_status_idx'),
        ]

    def __str__(self) -> str:
        return f"transfer {self.id} p={self.patient_id} {self.from_hospital_id}->{self.to_hospital_id} [{self.status}]"


class HealthRecord(models.Model):
    """A set of vitals recorded for a patient at a point in time."""
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='health_records')
    blood_pressure_systolic = models.PositiveIntegerField(null=True, blank=True)
    blood_pressure_diastolic = models.PositiveIntegerField(null=True, blank=True)
    heart_rate = models.PositiveIntegerField(null=True, blank=True)
    sugar_level = models.DecimalField(max_digits=6, decimal_places=1, null=True, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now)
    recorded_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='recorded_health_records'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'recorded_at'], name='core_health_patient_rec_idx')]

    def __str__(self) -> str:
        return f"vitals {self.id} p={self.patient_id} @ {self.recorded_at:%F %T}"


class MedicalReport(models.Model):
    """Metadata of a report file kept in private storage.

    ``file_path`` is a storage key relative to the reports bucket and is
    never handed out directly; see ``core.services.reports``.
    """
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='reports')
    report_name = models.CharField(max_length=255)
    file_path = models.CharField(max_length=512)
    report_type = models.CharField(max_length=64, blank=True, null=True)
    uploaded_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='uploaded_reports'
    )
    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [models.Index(fields=['patient', 'uploaded_at'], name='core_report_patient_upl_idx')]

    def __str__(self) -> str:
        return f"report {self.id} '{self.report_name}' p={self.patient_id}"


class TransferMessage(models.Model):
    """An immutable coordination message attached to one transfer."""
    transfer = models.ForeignKey(Transfer, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='transfer_messages'
    )
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['transfer', 'created_at'], name='core_tmsg_transfer_created_idx')]

    def __str__(self):
        return f"tmsg {self.id} transfer={self.transfer_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.BigIntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='core_audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='core_audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}:{self.object_id}"
