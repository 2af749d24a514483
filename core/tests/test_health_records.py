from decimal import Decimal

import pytest
from rest_framework.exceptions import PermissionDenied, ValidationError

from core.models import AuditEvent, HealthRecord
from core.services.actors import resolve_actor
from core.services.health_records import (
    create_health_record,
    delete_health_record,
    list_health_records,
    update_health_record,
)

pytestmark = pytest.mark.django_db


def test_doctor_at_admitting_hospital_records_vitals(doctor_a, patient):
    r = create_health_record(resolve_actor(doctor_a), patient, blood_pressure_systolic=120,
                             blood_pressure_diastolic=80, sugar_level=Decimal('5.4'))
    assert r.recorded_by_id == doctor_a.id
    assert r.heart_rate is None
    assert r.sugar_level == Decimal('5.4')


def test_other_roles_cannot_record(hospital_a, doctor_b, patient, patient_user):
    for user in (hospital_a, doctor_b, patient_user):
        with pytest.raises(PermissionDenied):
            create_health_record(resolve_actor(user), patient, heart_rate=70)


def test_at_least_one_vital_required(doctor_a, patient):
    with pytest.raises(ValidationError):
        create_health_record(resolve_actor(doctor_a), patient)


def test_list_newest_first(doctor_a, patient, patient_user):
    older = create_health_record(resolve_actor(doctor_a), patient, heart_rate=60)
    newer = create_health_record(resolve_actor(doctor_a), patient, heart_rate=90)
    ids = [r.id for r in list_health_records(resolve_actor(patient_user), patient)]
    assert ids == [newer.id, older.id]


def test_delete_by_owner_or_admitting_doctor(doctor_a, doctor_b, hospital_a, patient, patient_user):
    first = create_health_record(resolve_actor(doctor_a), patient, heart_rate=60)
    second = create_health_record(resolve_actor(doctor_a), patient, heart_rate=61)

    for outsider in (doctor_b, hospital_a):
        with pytest.raises(PermissionDenied):
            delete_health_record(resolve_actor(outsider), first)

    delete_health_record(resolve_actor(patient_user), first)
    delete_health_record(resolve_actor(doctor_a), second)
    assert not HealthRecord.objects.filter(patient=patient).exists()


def test_health_record_endpoints(api, doctor_a, patient, patient_user):
    resp = api(doctor_a).post(f'/api/patients/{patient.id}/health-records', {
        'bloodPressureSystolic': 130, 'bloodPressureDiastolic': 85, 'heartRate': 77,
    }, format='json')
    assert resp.status_code == 201
    record_id = resp.data['data']['id']

    resp = api(doctor_a).post(f'/api/patients/{patient.id}/health-records', {'bloodPressureSystolic': 130},
                              format='json')
    assert resp.status_code == 400

    resp = api(patient_user).post(f'/api/patients/{patient.id}/health-records', {'heartRate': 70}, format='json')
    assert resp.status_code == 403

    resp = api(patient_user).get(f'/api/patients/{patient.id}/health-records')
    assert [r['id'] for r in resp.data['data']] == [record_id]

    resp = api(patient_user).delete(f'/api/health-records/{record_id}')
    assert resp.status_code == 200
    resp = api(patient_user).delete(f'/api/health-records/{record_id}')
    assert resp.status_code == 404


def test_owner_and_admitting_doctor_update_vitals(doctor_a, patient, patient_user):
    record = create_health_record(resolve_actor(doctor_a), patient, blood_pressure_systolic=120,
                                  blood_pressure_diastolic=80)

    update_health_record(resolve_actor(patient_user), record, heart_rate=72)
    record.refresh_from_db()
    assert (record.blood_pressure_systolic, record.heart_rate) == (120, 72)

    update_health_record(resolve_actor(doctor_a), record, blood_pressure_systolic=None,
                         blood_pressure_diastolic=None)
    record.refresh_from_db()
    assert record.blood_pressure_systolic is None and record.heart_rate == 72
    assert AuditEvent.objects.filter(action='health_record_update', object_id=record.id).count() == 2


def test_update_keeps_vital_rules(doctor_a, patient):
    record = create_health_record(resolve_actor(doctor_a), patient, heart_rate=60)
    with pytest.raises(ValidationError):
        update_health_record(resolve_actor(doctor_a), record, blood_pressure_systolic=130)
    with pytest.raises(ValidationError):
        update_health_record(resolve_actor(doctor_a), record, heart_rate=None)
    record.refresh_from_db()
    assert record.heart_rate == 60 and record.blood_pressure_systolic is None


def test_update_denied_to_outsiders(doctor_a, doctor_b, hospital_a, patient):
    record = create_health_record(resolve_actor(doctor_a), patient, heart_rate=60)
    for outsider in (doctor_b, hospital_a):
        with pytest.raises(PermissionDenied):
            update_health_record(resolve_actor(outsider), record, heart_rate=99)
    record.refresh_from_db()
    assert record.heart_rate == 60


def test_patch_endpoint(api, doctor_a, doctor_b, patient, patient_user):
    record = create_health_record(resolve_actor(doctor_a), patient, heart_rate=60)
    url = f'/api/health-records/{record.id}'

    resp = api(patient_user).patch(url, {'sugarLevel': '5.9', 'recordedAt': '2026-03-01T08:30:00Z'},
                                   format='json')
    assert resp.status_code == 200
    assert resp.data['data']['sugarLevel'] == 5.9
    assert resp.data['data']['heartRate'] == 60
    assert resp.data['data']['recordedAt'].startswith('2026-03-01T08:30:00')

    assert api(patient_user).patch(url, {}, format='json').status_code == 400
    assert api(patient_user).patch(url, {'bloodPressureSystolic': 120}, format='json').status_code == 400
    assert api(doctor_b).patch(url, {'heartRate': 70}, format='json').status_code == 403
    assert api(patient_user).patch('/api/health-records/999999', {'heartRate': 70},
                                   format='json').status_code == 404
