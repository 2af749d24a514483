import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.models import Patient, User

PASSWORD = 'Tr4nsfer-pass-77'


@pytest.fixture(autouse=True)
def _isolated_cache_and_media(settings, tmp_path):
    # throttling counters live in the cache
    cache.clear()
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    yield
    cache.clear()


def make_user(email, role, *, hospital=None, full_name=''):
    return User.objects.create_user(
        username=email, email=email, password=PASSWORD,
        role=role, hospital=hospital, full_name=full_name or email.split('@')[0],
    )


@pytest.fixture
def hospital_a(db):
    return make_user('a@hosp.test', User.ROLE_HOSPITAL, full_name='Hospital A')


@pytest.fixture
def hospital_b(db):
    return make_user('b@hosp.test', User.ROLE_HOSPITAL, full_name='Hospital B')


@pytest.fixture
def hospital_c(db):
    return make_user('c@hosp.test', User.ROLE_HOSPITAL, full_name='Hospital C')


@pytest.fixture
def doctor_a(hospital_a):
    return make_user('doc.a@hosp.test', User.ROLE_DOCTOR, hospital=hospital_a)


@pytest.fixture
def doctor_b(hospital_b):
    return make_user('doc.b@hosp.test', User.ROLE_DOCTOR, hospital=hospital_b)


@pytest.fixture
def doctor_c(hospital_c):
    return make_user('doc.c@hosp.test', User.ROLE_DOCTOR, hospital=hospital_c)


@pytest.fixture
def admin_user(db):
    return make_user('root@hosp.test', User.ROLE_ADMIN)


@pytest.fixture
def patient_user(db):
    return make_user('x@patient.test', User.ROLE_PATIENT, full_name='Patient X')


@pytest.fixture
def patient(patient_user, hospital_a):
    """Patient X, admitted at Hospital A."""
    return Patient.objects.create(user=patient_user, current_hospital=hospital_a)


@pytest.fixture
def api():
    """``api(user)`` returns an APIClient authenticated as ``user``."""
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client
