import pytest
from django.core.cache import cache

from booking.models import Hospital
from booking.store import SlotStore
from booking.tests.factories import make_doctor, make_patient, make_staff
from booking.tests.fakes import RecordingMessenger


@pytest.fixture(autouse=True)
def _reset_state():
    # throttle counters and the doctor list live in the cache
    cache.clear()
    RecordingMessenger.sent.clear()
    yield


@pytest.fixture
def hospital(db):
    return Hospital.objects.create(id='h1', name='City Care Hospital')


@pytest.fixture
def doctor(hospital):
    return make_doctor(hospital, 'doctor1', fee=800, specialization='Cardiology')


@pytest.fixture
def second_doctor(hospital):
    return make_doctor(hospital, 'doctor2', fee=0, first_name='Arjun')


@pytest.fixture
def patient(hospital):
    return make_patient(hospital, 'patient1')


@pytest.fixture
def other_patient(hospital):
    return make_patient(hospital, 'patient2', phone='+919800000002')


@pytest.fixture
def receptionist(hospital):
    return make_staff(hospital, 'reception1')


@pytest.fixture
def store():
    return SlotStore()
