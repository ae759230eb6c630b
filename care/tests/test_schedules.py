import datetime

import pytest
from django.urls import reverse

from care.models import DoctorSchedule, Notification
from care.services.slots import weekday_index

pytestmark = pytest.mark.django_db


def window(day_of_week=1, start='09:00', end='12:00', **extra):
    payload = {'day_of_week': day_of_week, 'start_time': start, 'end_time': end}
    payload.update(extra)
    return payload


def test_doctor_schedule_starts_pending(client_for, doctor):
    r = client_for(doctor).post(reverse('my_schedules'), window(), format='json')
    assert r.status_code == 201
    assert r.data['data']['approvalStatus'] == 'pending'
    assert r.data['data']['startTime'] == '09:00'


def test_overlapping_window_is_refused(client_for, doctor):
    c = client_for(doctor)
    assert c.post(reverse('my_schedules'), window(), format='json').status_code == 201
    r = c.post(reverse('my_schedules'), window(start='11:00', end='13:00'), format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'schedule_conflict'
    # touching windows do not overlap
    assert c.post(reverse('my_schedules'), window(start='12:00', end='14:00'), format='json').status_code == 201
    # another weekday is fine
    assert c.post(reverse('my_schedules'), window(day_of_week=2), format='json').status_code == 201


def test_invalid_windows(client_for, doctor):
    c = client_for(doctor)
    r = c.post(reverse('my_schedules'), window(start='12:00', end='09:00'), format='json')
    assert r.status_code == 400
    r = c.post(reverse('my_schedules'), {'start_time': '09:00', 'end_time': '10:00'}, format='json')
    assert r.status_code == 400


def test_specific_date_sets_weekday(client_for, doctor, next_week):
    r = client_for(doctor).post(
        reverse('my_schedules'),
        {'specific_date': next_week.isoformat(), 'start_time': '1:00 PM', 'end_time': '3:00 PM'},
        format='json',
    )
    assert r.status_code == 201
    assert r.data['data']['dayOfWeek'] == weekday_index(next_week)
    assert r.data['data']['startTime'] == '13:00'


def test_bulk_create_is_all_or_nothing(client_for, doctor):
    c = client_for(doctor)
    r = c.post(reverse('my_schedules_bulk'), {'schedules': [window(1), window(1, '10:00', '11:00')]},
               format='json')
    assert r.status_code == 400
    assert DoctorSchedule.objects.count() == 0
    r = c.post(reverse('my_schedules_bulk'), {'schedules': [window(1), window(3), window(5)]}, format='json')
    assert r.status_code == 201
    assert len(r.data['data']) == 3


def test_staff_review_notifies_doctor(client_for, doctor, staff):
    created = client_for(doctor).post(reverse('my_schedules'), window(), format='json').data['data']
    c = client_for(staff)

    r = c.post(reverse('review_schedule', args=[created['id']]), {'action': 'reject'}, format='json')
    assert r.status_code == 400

    r = c.post(reverse('review_schedule', args=[created['id']]), {'action': 'reject', 'reason': 'clinic closed'},
               format='json')
    assert r.status_code == 200
    assert r.data['data']['approvalStatus'] == 'rejected'
    assert r.data['data']['rejectionReason'] == 'clinic closed'

    r = c.post(reverse('review_schedule', args=[created['id']]), {'action': 'approve'}, format='json')
    assert r.data['data']['approvalStatus'] == 'approved'
    assert Notification.objects.filter(user=doctor, type=Notification.TYPE_SCHEDULE_UPDATE).count() == 2


def test_doctor_edit_goes_back_to_review(client_for, doctor, schedule):
    r = client_for(doctor).patch(reverse('my_schedule_detail', args=[schedule.id]), {'end_time': '13:00'},
                                 format='json')
    assert r.status_code == 200
    assert r.data['data']['endTime'] == '13:00'
    assert r.data['data']['approvalStatus'] == 'pending'


def test_staff_created_windows_are_approved(client_for, doctor, staff):
    r = client_for(staff).post(reverse('staff_schedules'), dict(window(), doctor_id=doctor.id), format='json')
    assert r.status_code == 201
    assert r.data['data']['approvalStatus'] == 'approved'
    listing = client_for(staff).get(reverse('staff_schedules'), {'doctorId': doctor.id, 'status': 'approved'})
    assert len(listing.data['data']) == 1


def test_doctor_cannot_touch_other_schedules(client_for, other_doctor, schedule, patient):
    r = client_for(other_doctor).delete(reverse('my_schedule_detail', args=[schedule.id]))
    assert r.status_code == 404
    r = client_for(patient).get(reverse('staff_schedules'))
    assert r.status_code == 403


def test_public_schedule_view_hides_unapproved(client_for, patient, doctor, schedule, next_week):
    DoctorSchedule.objects.create(doctor=doctor, day_of_week=schedule.day_of_week,
                                  start_time=datetime.time(14), end_time=datetime.time(16))
    r = client_for(patient).get(reverse('doctor_schedules', args=[doctor.id]), {'date': next_week.isoformat()})
    assert r.status_code == 200
    assert [s['id'] for s in r.data['data']] == [schedule.id]
