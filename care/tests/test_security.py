import pytest
from django.core.management import call_command
from django.urls import reverse
from rest_framework.test import APIClient

from care.models import AuditEvent, PatientProfile, User
from care.tests.conftest import PASSWORD

pytestmark = pytest.mark.django_db


def login(client, username, password=PASSWORD, **extra):
    return client.post(reverse('login_view'), {'username': username, 'password': password, **extra}, format='json')


def test_no_role_bypass_in_login(patient):
    client = APIClient()
    # Try to bypass by sending role
    r = login(client, patient.username, role='admin')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'
    patient.refresh_from_db()
    assert patient.role == 'patient'


def test_login_returns_jwt_and_legacy_token(patient):
    r = login(APIClient(), patient.username)
    assert r.status_code == 200
    assert r.data['token']
    assert r.data['jwt_access']
    assert r.data['jwt_refresh']
    assert r.data['user']['username'] == patient.username


def test_login_by_email_and_bad_password(patient):
    client = APIClient()
    assert login(client, patient.email).status_code == 200
    r = login(client, patient.username, password='wrong-password')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_token_and_jwt_both_authenticate(patient):
    tokens = login(APIClient(), patient.username).data

    c = APIClient()
    c.credentials(HTTP_AUTHORIZATION=f"Token {tokens['token']}")
    assert c.get(reverse('profile_view')).status_code == 200

    c = APIClient()
    c.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['jwt_access']}")
    assert c.get(reverse('profile_view')).status_code == 200

    assert APIClient().get(reverse('profile_view')).status_code in (401, 403)


def test_refresh_and_logout_blacklist(patient):
    tokens = login(APIClient(), patient.username).data
    client = APIClient()
    r = client.post(reverse('jwt_refresh_view'), {'refresh': tokens['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Token {tokens['token']}")
    r = client.post(reverse('jwt_logout_view'), {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] >= 1

    r = APIClient().post(reverse('jwt_refresh_view'), {'refresh': tokens['jwt_refresh']}, format='json')
    assert r.status_code == 401


def test_register_creates_patient_only():
    client = APIClient()
    r = client.post(reverse('register_view'), {
        'username': 'newbie', 'email': 'newbie@mail.test', 'password': 'Sturdy#Pass99',
        'name': 'New Patient', 'role': 'admin', 'sex': 'F',
    }, format='json')
    assert r.status_code == 201
    user = User.objects.get(username='newbie')
    assert user.role == 'patient'
    assert PatientProfile.objects.get(user=user).reference_number
    assert r.data['user']['patient']['sex'] == 'F'

    dup = client.post(reverse('register_view'), {
        'username': 'newbie2', 'email': 'newbie@mail.test', 'password': 'Sturdy#Pass99', 'name': 'Dup',
    }, format='json')
    assert dup.status_code == 400


def test_register_rejects_weak_password():
    r = APIClient().post(reverse('register_view'), {
        'username': 'weakling', 'email': 'weak@mail.test', 'password': '12345678', 'name': 'Weak One',
    }, format='json')
    assert r.status_code == 400
    assert not User.objects.filter(username='weakling').exists()


def test_profile_update_and_password_change(client_for, patient):
    c = client_for(patient)
    r = c.patch(reverse('profile_view'), {'name': 'Juan Miguel Cruz', 'blood_type': 'O+'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['firstName'] == 'Juan'
    assert r.data['data']['lastName'] == 'Miguel Cruz'
    assert r.data['data']['patient']['bloodType'] == 'O+'

    r = c.post(reverse('change_password_view'), {'old_password': 'nope', 'new_password': 'Another#Pass77'},
               format='json')
    assert r.status_code == 400
    r = c.post(reverse('change_password_view'), {'old_password': PASSWORD, 'new_password': 'Another#Pass77'},
               format='json')
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.check_password('Another#Pass77')


def test_admin_manages_users(client_for, admin_user, patient):
    c = client_for(admin_user)
    r = c.post(reverse('admin_users'), {
        'username': 'dr_new', 'password': 'Doctor#Pass55', 'role': 'doctor', 'name': 'Ana Cruz',
        'specialty': 'Cardiology', 'consultation_fee': '900.00',
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['doctor']['specialty'] == 'Cardiology'

    listing = c.get(reverse('admin_users'), {'role': 'doctor'})
    assert listing.data['pagination']['total'] == 1

    r = c.delete(reverse('admin_user_detail', args=[patient.id]))
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.is_active is False

    assert c.delete(reverse('admin_user_detail', args=[admin_user.id])).status_code == 403


def test_role_gates(client_for, patient, doctor, staff):
    assert client_for(patient).get(reverse('admin_users')).status_code == 403
    assert client_for(staff).get(reverse('admin_users')).status_code == 403
    assert client_for(doctor).get(reverse('staff_appointments')).status_code == 403
    assert client_for(patient).get(reverse('doctor_appointments')).status_code == 403


def test_ensure_test_users_command_is_idempotent():
    call_command('ensure_test_users', '--password', 'Seed#Pass2024')
    call_command('ensure_test_users', '--password', 'Seed#Pass2024')
    assert User.objects.filter(username__in=['admin1', 'staff1', 'doctor1', 'patient1']).count() == 4
    assert User.objects.get(username='admin1').is_superuser
    assert login(APIClient(), 'doctor1', 'Seed#Pass2024').status_code == 200
