import datetime
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from care.models import DoctorProfile, DoctorSchedule, PatientProfile, User
from care.services.slots import weekday_index

PASSWORD = 'Clinic#2024pw'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and cached catalogue live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / 'media'


def make_user(username, role, **extra):
    user = User.objects.create_user(username=username, password=PASSWORD, role=role,
                                    email=f'{username}@clinic.test', **extra)
    if role == User.ROLE_PATIENT:
        PatientProfile.objects.create(user=user, reference_number=f'PT-{username.upper()}')
    if role == User.ROLE_DOCTOR:
        DoctorProfile.objects.create(user=user, specialty='Internal Medicine', consultation_fee=Decimal('500.00'))
    return user


@pytest.fixture
def patient(db):
    return make_user('pat1', User.ROLE_PATIENT, first_name='Juan', last_name='Dela Cruz')


@pytest.fixture
def other_patient(db):
    return make_user('pat2', User.ROLE_PATIENT, first_name='Liza', last_name='Garcia')


@pytest.fixture
def doctor(db):
    return make_user('doc1', User.ROLE_DOCTOR, first_name='Maria', last_name='Santos')


@pytest.fixture
def other_doctor(db):
    return make_user('doc2', User.ROLE_DOCTOR, first_name='Jose', last_name='Reyes')


@pytest.fixture
def staff(db):
    return make_user('staff1', User.ROLE_STAFF)


@pytest.fixture
def admin_user(db):
    return make_user('admin1', User.ROLE_ADMIN, is_staff=True, is_superuser=True)


@pytest.fixture
def next_week():
    return timezone.localdate() + datetime.timedelta(days=7)


@pytest.fixture
def schedule(doctor, next_week):
    """Approved 09:00-12:00 weekly window on the weekday of ``next_week``."""
    return DoctorSchedule.objects.create(
        doctor=doctor,
        day_of_week=weekday_index(next_week),
        start_time=datetime.time(9),
        end_time=datetime.time(12),
        max_appointments=10,
        approval_status=DoctorSchedule.APPROVAL_APPROVED,
    )


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
