"""
Django admin registrations for the core models.

Transfers and admission state are read-only here. Status and
``current_hospital`` change only through the workflow services.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    HealthRecord,
    MedicalReport,
    Patient,
    Transfer,
    TransferMessage,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'full_name', 'role', 'hospital', 'is_active')
    list_filter = ('role',)
    search_fields = ('username', 'email', 'full_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'current_hospital', 'created_at')
    search_fields = ('user__email', 'user__full_name')
    readonly_fields = ('current_hospital',)


@admin.register(Transfer)
class TransferAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'from_hospital', 'to_hospital', 'transfer_type', 'status', 'requested_at')
    list_filter = ('status', 'transfer_type')
    search_fields = ('id', 'patient__user__email')
    readonly_fields = ('status', 'accepted_at', 'completed_at')


@admin.register(HealthRecord)
class HealthRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'blood_pressure_systolic', 'blood_pressure_diastolic',
                    'heart_rate', 'sugar_level', 'recorded_at')
    search_fields = ('patient__user__email',)


@admin.register(MedicalReport)
class MedicalReportAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'report_name', 'report_type', 'uploaded_at')
    search_fields = ('report_name', 'patient__user__email')


@admin.register(TransferMessage)
class TransferMessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'transfer', 'sender', 'created_at')
    search_fields = ('transfer__id', 'sender__email')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
