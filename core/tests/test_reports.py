import time

import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.exceptions import PermissionDenied, ValidationError

from core.exceptions import StorageError
from core.models import MedicalReport, Transfer
from core.services import reports as svc
from core.services.actors import resolve_actor
from core.services.transfers import accept_transfer, request_transfer

pytestmark = pytest.mark.django_db


def _pdf(name='scan.pdf', body=b'%PDF-1.4 test'):
    return SimpleUploadedFile(name, body, content_type='application/pdf')


def test_clean_path_strips_slash_and_bucket():
    assert svc.clean_path('/medical-reports/7/1_x.pdf') == '7/1_x.pdf'
    assert svc.clean_path('medical-reports/7/1_x.pdf') == '7/1_x.pdf'
    assert svc.clean_path(' 7/1_x.pdf ') == '7/1_x.pdf'
    assert svc.storage_key('/7/1_x.pdf') == 'medical-reports/7/1_x.pdf'


def test_build_report_path_sanitises_name():
    path = svc.build_report_path(12, 'Chest X-ray (front)', 'img.PNG', now=1700000000.5)
    assert path == '12/1700000000500_Chest_X-ray__front_.PNG'


def test_upload_and_signed_download(doctor_a, patient, patient_user, client):
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='Blood panel',
                               report_type='lab')
    assert report.file_path.startswith(f'{patient.id}/')
    assert default_storage.exists(svc.storage_key(report.file_path))

    result = svc.mint_signed_url(resolve_actor(patient_user), report)
    assert result['expiresIn'] == 3600
    resp = client.get(result['signedUrl'])
    assert resp.status_code == 200
    assert b''.join(resp.streaming_content) == b'%PDF-1.4 test'


def test_signed_url_requires_read_access(doctor_a, hospital_b, patient):
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='MRI')
    with pytest.raises(PermissionDenied):
        svc.mint_signed_url(resolve_actor(hospital_b), report)


def test_signed_url_for_missing_object_is_storage_error(doctor_a, patient):
    report = MedicalReport.objects.create(patient=patient, report_name='ghost', file_path=f'{patient.id}/none.pdf')
    with pytest.raises(StorageError):
        svc.mint_signed_url(resolve_actor(doctor_a), report)
    report.file_path = ''
    with pytest.raises(StorageError):
        svc.mint_signed_url(resolve_actor(doctor_a), report)


def test_expired_and_tampered_tokens_rejected(doctor_a, patient, monkeypatch):
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='ECG')
    url = svc.mint_signed_url(resolve_actor(doctor_a), report, ttl=60)['signedUrl']
    token = url.rstrip('/').rsplit('/', 1)[-1]

    handle, name = svc.open_signed_report(token)
    handle.close()
    assert name.endswith('.pdf')

    with pytest.raises(PermissionDenied):
        svc.open_signed_report(token[:-2] + 'xx')

    real_time = time.time
    monkeypatch.setattr(time, 'time', lambda: real_time() + 120)
    with pytest.raises(PermissionDenied) as exc:
        svc.open_signed_report(token)
    assert 'expired' in str(exc.value.detail)


def test_upload_rejects_unsupported_type(doctor_a, patient):
    bad = SimpleUploadedFile('run.sh', b'#!/bin/sh', content_type='text/x-shellscript')
    with pytest.raises(ValidationError):
        svc.upload_report(resolve_actor(doctor_a), patient, bad, report_name='script')


def test_patient_cannot_upload_or_delete(doctor_a, patient, patient_user):
    with pytest.raises(PermissionDenied):
        svc.upload_report(resolve_actor(patient_user), patient, _pdf(), report_name='self')
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='keep')
    with pytest.raises(PermissionDenied):
        svc.delete_report(resolve_actor(patient_user), report)


def test_delete_removes_object_and_row(hospital_a, doctor_a, patient):
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='old')
    key = svc.storage_key(report.file_path)
    svc.delete_report(resolve_actor(hospital_a), report)
    assert not default_storage.exists(key)
    assert not MedicalReport.objects.filter(report_name='old').exists()


def test_report_endpoints(api, doctor_a, patient, patient_user):
    resp = api(doctor_a).post(f'/api/patients/{patient.id}/reports',
                              {'file': _pdf(), 'reportName': 'Lipids'}, format='multipart')
    assert resp.status_code == 201
    report_id = resp.data['data']['id']

    client = api(patient_user)
    listing = client.get(f'/api/patients/{patient.id}/reports')
    assert [r['id'] for r in listing.data['data']] == [report_id]
    signed = client.get(f'/api/reports/{report_id}/signed-url')
    assert signed.status_code == 200
    assert signed.data['signedUrl'].startswith('http://testserver/api/reports/files/')

    resp = api().get(signed.data['signedUrl'])
    assert resp.status_code == 200

    resp = api(doctor_a).delete(f'/api/reports/{report_id}')
    assert resp.status_code == 200


def test_signed_url_access_follows_handover(hospital_a, hospital_b, doctor_a, doctor_b, patient):
    report = svc.upload_report(resolve_actor(doctor_a), patient, _pdf(), report_name='Discharge letter')
    svc.mint_signed_url(resolve_actor(hospital_a), report)
    with pytest.raises(PermissionDenied):
        svc.mint_signed_url(resolve_actor(hospital_b), report)

    t = request_transfer(resolve_actor(hospital_a), patient_id=patient.id, to_hospital_id=hospital_b.id,
                         transfer_type=Transfer.TYPE_NON_EMERGENCY)
    assert accept_transfer(resolve_actor(hospital_b), t.id).admission.ok

    report = MedicalReport.objects.select_related('patient').get(id=report.id)
    for sender_side in (hospital_a, doctor_a):
        with pytest.raises(PermissionDenied):
            svc.mint_signed_url(resolve_actor(sender_side), report)
    for receiving_side in (hospital_b, doctor_b):
        assert svc.mint_signed_url(resolve_actor(receiving_side), report)['signedUrl']
