"""
Report Access Broker.

Report files live in a private area of the default storage under
``settings.REPORTS_BUCKET``.  ``MedicalReport.file_path`` holds the key
relative to that area and is never handed out directly; readers get a
short-lived signed token instead, verified by ``open_signed_report``.
"""
import logging
import os
import re
import time
from typing import Optional

from django.conf import settings
from django.core import signing
from django.core.files.storage import default_storage
from django.urls import reverse
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import StorageError
from core.models import MedicalReport, Patient
from core.services.access import can_manage_reports, ensure_patient_data_access
from core.services.actors import Actor
from core.services.audit import try_log_action

logger = logging.getLogger(__name__)

_SIGNER_SALT = 'core.reports.signed-url'
_UNSAFE = re.compile(r'[^a-zA-Z0-9\-_]')


def _bucket() -> str:
    return getattr(settings, 'REPORTS_BUCKET', 'medical-reports')


def clean_path(file_path: str) -> str:
    """Normalise a stored path to a key relative to the reports area."""
    path = (file_path or '').strip()
    if path.startswith('/'):
        path = path[1:]
    prefix = f'{_bucket()}/'
    if path.startswith(prefix):
        path = path[len(prefix):]
    return path


def storage_key(file_path: str) -> str:
    return f'{_bucket()}/{clean_path(file_path)}'


def build_report_path(patient_id: int, report_name: str, original_name: str, now: Optional[float] = None) -> str:
    ext = original_name.rsplit('.', 1)[-1] if '.' in original_name else 'bin'
    stamp = int((now if now is not None else time.time()) * 1000)
    return f'{patient_id}/{stamp}_{_UNSAFE.sub("_", report_name)}.{ext}'


def _signer() -> signing.TimestampSigner:
    return signing.TimestampSigner(salt=_SIGNER_SALT)


def _ensure_writer(actor: Actor, patient: Patient) -> None:
    if not can_manage_reports(actor, patient):
        raise PermissionDenied('Only doctors or the admitting hospital can manage reports for this patient')


def upload_report(actor: Actor, patient: Patient, uploaded_file, *, report_name: str,
                  report_type: Optional[str] = None) -> MedicalReport:
    _ensure_writer(actor, patient)
    size_mb = (uploaded_file.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValidationError({'file': f'File exceeds {settings.UPLOAD_MAX_MB} MB'})
    ctype = getattr(uploaded_file, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'file': f'Unsupported file type: {ctype or "unknown"}'})

    relative = build_report_path(patient.id, report_name, uploaded_file.name or '')
    try:
        saved = default_storage.save(storage_key(relative), uploaded_file)
    except OSError as exc:
        logger.error('report upload for patient %s failed: %s', patient.id, exc)
        raise StorageError(f'Failed to upload file: {exc}')

    report = MedicalReport.objects.create(
        patient=patient,
        report_name=report_name,
        report_type=report_type or None,
        file_path=clean_path(saved),
        uploaded_by_id=actor.id,
    )
    try_log_action(user_id=actor.id, action='report_upload', object_type='report', object_id=report.id,
                   detail={'patientId': patient.id})
    return report


def list_reports(actor: Actor, patient: Patient):
    ensure_patient_data_access(actor, patient)
    return MedicalReport.objects.filter(patient=patient).order_by('-uploaded_at', '-id')


def delete_report(actor: Actor, report: MedicalReport) -> None:
    _ensure_writer(actor, report.patient)
    if report.file_path:
        try:
            default_storage.delete(storage_key(report.file_path))
        except OSError as exc:
            logger.error('report %s: failed to delete %s: %s', report.id, report.file_path, exc)
            raise StorageError(f'Failed to delete file: {exc}')
    report_id = report.id
    report.delete()
    try_log_action(user_id=actor.id, action='report_delete', object_type='report', object_id=report_id)


def mint_signed_url(actor: Actor, report: MedicalReport, ttl: Optional[int] = None) -> dict:
    """Issue a signed, expiring download path for ``report``."""
    ensure_patient_data_access(actor, report.patient)
    ttl = int(ttl or settings.REPORT_URL_TTL)
    if not report.file_path:
        raise StorageError('Report file path is missing')
    key = storage_key(report.file_path)
    try:
        present = default_storage.exists(key)
    except OSError as exc:
        raise StorageError(f'Failed to generate signed URL: {exc}')
    if not present:
        logger.warning('report %s: object %s missing from storage', report.id, key)
        raise StorageError('Failed to generate signed URL: object not found')

    token = _signer().sign_object({'r': report.id, 'k': clean_path(report.file_path), 't': ttl})
    return {'signedUrl': reverse('report-file', args=[token]), 'expiresIn': ttl}


def open_signed_report(token: str):
    """Verify ``token`` and return ``(file, filename)`` for the report object."""
    signer = _signer()
    try:
        payload = signer.unsign_object(token)
        signer.unsign_object(token, max_age=int(payload['t']))
    except signing.SignatureExpired:
        raise PermissionDenied('Signed URL has expired')
    except (signing.BadSignature, KeyError, TypeError, ValueError):
        raise PermissionDenied('Invalid signed URL')

    key = storage_key(payload['k'])
    if not default_storage.exists(key):
        raise NotFound('Report file not found')
    try:
        handle = default_storage.open(key, 'rb')
    except OSError as exc:
        raise StorageError(f'Failed to open file: {exc}')
    return handle, os.path.basename(key)
