import datetime

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from care.models import Appointment, DoctorSchedule, DoctorService, HospitalService, User
from care.services import appointments as appointment_svc

pytestmark = pytest.mark.django_db


def test_healthz():
    r = APIClient().get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True, 'cache': True}


def test_public_services_are_cached_until_admin_change(client_for, admin_user):
    HospitalService.objects.create(name='ECG', category='Cardiology', price='600.00')
    HospitalService.objects.create(name='Old test', price='10.00', is_active=False)
    anon = APIClient()
    r = anon.get(reverse('public_services'))
    assert r.status_code == 200
    assert [s['name'] for s in r.data['data']] == ['ECG']

    HospitalService.objects.create(name='Urinalysis', category='Laboratory', price='150.00')
    assert len(anon.get(reverse('public_services')).data['data']) == 1

    c = client_for(admin_user)
    r = c.post(reverse('admin_services'), {'name': 'Chest <b>X-Ray</b>', 'category': 'Imaging', 'price': '800.00'},
               format='json')
    assert r.status_code == 201
    assert r.data['data']['name'] == 'Chest X-Ray'
    assert len(anon.get(reverse('public_services')).data['data']) == 3


def test_admin_service_update_and_delete(client_for, admin_user, staff):
    service = HospitalService.objects.create(name='ECG', price='600.00')
    c = client_for(admin_user)
    r = c.patch(reverse('admin_service_detail', args=[service.id]), {'price': '650.00'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['price'] == '650.00'
    assert c.post(reverse('admin_services'), {'name': 'Free', 'price': '-1'}, format='json').status_code == 400
    assert client_for(staff).get(reverse('admin_services')).status_code == 403
    assert c.delete(reverse('admin_service_detail', args=[service.id])).status_code == 200
    assert not HospitalService.objects.filter(id=service.id).exists()


def test_doctor_manages_own_services(client_for, doctor, other_doctor, patient):
    c = client_for(doctor)
    r = c.post(reverse('my_services'), {'name': 'Follow-up', 'price': '300.00', 'duration_minutes': 20},
               format='json')
    assert r.status_code == 201
    service_id = r.data['data']['id']
    assert c.patch(reverse('my_service_detail', args=[service_id]), {'is_active': False},
                   format='json').status_code == 200
    assert len(c.get(reverse('my_services')).data['data']) == 1
    # inactive services are hidden from patients
    assert client_for(patient).get(reverse('doctor_services', args=[doctor.id])).data['data'] == []

    assert client_for(other_doctor).delete(reverse('my_service_detail', args=[service_id])).status_code == 404
    assert client_for(patient).post(reverse('my_services'), {'name': 'x', 'price': '1'},
                                    format='json').status_code == 403


def test_directory_lists_only_scheduled_doctors(client_for, patient, doctor, other_doctor):
    c = client_for(patient)
    assert c.get(reverse('doctors')).data['pagination']['total'] == 0

    DoctorSchedule.objects.create(doctor=doctor, day_of_week=1, start_time=datetime.time(9),
                                  end_time=datetime.time(12), approval_status=DoctorSchedule.APPROVAL_APPROVED)
    DoctorSchedule.objects.create(doctor=other_doctor, day_of_week=2, start_time=datetime.time(9),
                                  end_time=datetime.time(12))
    DoctorService.objects.create(doctor=doctor, name='Consultation', price='500.00')

    r = c.get(reverse('doctors'))
    assert [d['id'] for d in r.data['data']] == [doctor.id]
    assert r.data['data'][0]['specialty'] == 'Internal Medicine'
    assert [s['name'] for s in r.data['data'][0]['services']] == ['Consultation']

    assert c.get(reverse('doctors'), {'q': 'santos'}).data['pagination']['total'] == 1
    assert c.get(reverse('doctors'), {'specialty': 'Pediatrics'}).data['pagination']['total'] == 0

    detail = c.get(reverse('doctor_detail', args=[doctor.id]))
    assert detail.data['data']['consultationFee'] == '500.00'
    assert c.get(reverse('doctor_detail', args=[patient.id])).status_code == 404


def test_role_dashboards(client_for, patient, doctor, staff, admin_user, schedule, next_week):
    appointment_svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9),
                                     reason='visit')

    r = client_for(patient).get(reverse('dashboard'))
    assert r.data['role'] == 'patient'
    assert len(r.data['data']['upcomingAppointments']) == 1
    assert r.data['data']['unreadNotifications'] == 0

    r = client_for(doctor).get(reverse('dashboard'))
    assert r.data['data']['pendingCount'] == 1
    assert r.data['data']['totalPatients'] == 1

    assert client_for(staff).get(reverse('dashboard')).data['data']['pendingSchedules'] == 0

    r = client_for(admin_user).get(reverse('admin_dashboard'))
    assert r.data['data']['users']['patient'] == 1
    assert r.data['data']['appointments'][Appointment.STATUS_PENDING] == 1
    assert r.data['data']['revenue'] == '0'
    assert client_for(staff).get(reverse('admin_dashboard')).status_code == 403


@pytest.mark.parametrize('report_type', ['appointments', 'patients', 'financial', 'summary'])
def test_report_download(client_for, admin_user, patient, report_type):
    today = timezone.localdate()
    r = client_for(admin_user).get(reverse('report_download'), {
        'type': report_type, 'start': (today - datetime.timedelta(days=30)).isoformat(), 'end': today.isoformat(),
    })
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert r.content.startswith(b'%PDF')


def test_report_download_validates_period(client_for, admin_user):
    r = client_for(admin_user).get(reverse('report_download'),
                                   {'type': 'summary', 'start': '2024-05-10', 'end': '2024-05-01'})
    assert r.status_code == 400


def test_populate_data_seeds_bookable_doctors():
    call_command('populate_data', '--password', 'Seed#Pass2024')
    call_command('populate_data', '--password', 'Seed#Pass2024')
    assert HospitalService.objects.count() == 7
    doctors = User.objects.filter(role=User.ROLE_DOCTOR)
    assert doctors.count() == 3
    assert DoctorSchedule.objects.filter(doctor__in=doctors).count() == 30
    assert Appointment.objects.filter(doctor__in=doctors).exists()
