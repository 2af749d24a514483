import pytest

from core.models import Patient, Transfer
from core.services.access import (
    can_access_patient_data,
    can_manage_reports,
    can_record_vitals,
    can_view_transfer,
)
from core.services.actors import (
    AdminActor,
    DoctorActor,
    HospitalActor,
    PatientActor,
    resolve_actor,
    role_of,
)
from rest_framework.exceptions import NotAuthenticated

pytestmark = pytest.mark.django_db


def test_resolve_actor_per_role(hospital_a, doctor_a, patient_user, admin_user):
    assert resolve_actor(hospital_a) == HospitalActor(id=hospital_a.id)
    assert resolve_actor(doctor_a) == DoctorActor(id=doctor_a.id, hospital_id=hospital_a.id)
    assert resolve_actor(patient_user) == PatientActor(id=patient_user.id)
    assert resolve_actor(admin_user) == AdminActor(id=admin_user.id)
    assert role_of(resolve_actor(doctor_a)) == 'doctor'


def test_resolve_actor_requires_identity():
    with pytest.raises(NotAuthenticated):
        resolve_actor(None)


def test_patient_data_access_matrix(hospital_a, hospital_b, doctor_a, doctor_b, patient, patient_user, admin_user):
    allowed = {
        'patient': resolve_actor(patient_user),
        'hospital_a': resolve_actor(hospital_a),
        'doctor_a': resolve_actor(doctor_a),
    }
    denied = {
        'hospital_b': resolve_actor(hospital_b),
        'doctor_b': resolve_actor(doctor_b),
        'admin': resolve_actor(admin_user),
    }
    for name, actor in allowed.items():
        assert can_access_patient_data(actor, patient), name
    for name, actor in denied.items():
        assert not can_access_patient_data(actor, patient), name


def test_access_follows_current_admission_immediately(hospital_a, hospital_b, doctor_a, doctor_b, patient):
    assert can_access_patient_data(resolve_actor(doctor_a), patient)
    Patient.objects.filter(id=patient.id).update(current_hospital=hospital_b)
    patient.refresh_from_db()
    assert not can_access_patient_data(resolve_actor(doctor_a), patient)
    assert can_access_patient_data(resolve_actor(doctor_b), patient)
    assert not can_access_patient_data(resolve_actor(hospital_a), patient)


def test_unaffiliated_doctor_sees_no_patients(patient, patient_user):
    patient.current_hospital = None
    assert not can_access_patient_data(DoctorActor(id=1, hospital_id=None), patient)
    # the patient still sees their own record while not admitted anywhere
    assert can_access_patient_data(resolve_actor(patient_user), patient)


def test_write_predicates(hospital_a, doctor_a, patient, patient_user):
    assert can_record_vitals(resolve_actor(doctor_a), patient)
    assert not can_record_vitals(resolve_actor(hospital_a), patient)
    assert not can_record_vitals(resolve_actor(patient_user), patient)
    assert can_manage_reports(resolve_actor(doctor_a), patient)
    assert can_manage_reports(resolve_actor(hospital_a), patient)
    assert not can_manage_reports(resolve_actor(patient_user), patient)


def test_transfer_visibility(hospital_a, hospital_b, hospital_c, doctor_a, doctor_c, patient, patient_user):
    t = Transfer(patient=patient, from_hospital=hospital_a, to_hospital=hospital_b,
                 status=Transfer.STATUS_REQUESTED)
    assert can_view_transfer(resolve_actor(patient_user), t)
    assert can_view_transfer(resolve_actor(hospital_a), t)
    assert can_view_transfer(resolve_actor(hospital_b), t)
    assert not can_view_transfer(resolve_actor(hospital_c), t)
    assert not can_view_transfer(resolve_actor(doctor_a), t)

    t.status = Transfer.STATUS_ACCEPTED
    assert can_view_transfer(resolve_actor(doctor_a), t)
    assert not can_view_transfer(resolve_actor(doctor_c), t)
