import datetime
from decimal import Decimal

import pytest
from django.urls import reverse

from care.exceptions import SlotUnavailable
from care.models import Appointment, AppointmentTransition, DoctorService, Notification
from care.services import appointments as svc

pytestmark = pytest.mark.django_db


def booking(doctor, day, at='10:00', **extra):
    payload = {'doctor_id': doctor.id, 'appointment_date': day.isoformat(), 'appointment_time': at,
               'reason': 'Persistent cough'}
    payload.update(extra)
    return payload


def test_can_transition_table():
    assert svc.can_transition('pending', 'confirmed')
    assert svc.can_transition('pending', 'cancelled')
    assert svc.can_transition('confirmed', 'completed')
    assert not svc.can_transition('pending', 'completed')
    assert not svc.can_transition('completed', 'cancelled')
    assert not svc.can_transition('cancelled', 'pending')


def test_patient_books_free_slot(client_for, patient, doctor, schedule, next_week):
    r = client_for(patient).post(reverse('patient_appointments'), booking(doctor, next_week), format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert data['status'] == 'pending'
    assert data['time'] == '10:00'
    assert data['fee'] == '500.00'
    assert data['referenceNumber']

    appointment = Appointment.objects.get(id=data['id'])
    assert AppointmentTransition.objects.filter(appointment=appointment, to_status='pending').exists()
    n = Notification.objects.get(user=doctor)
    assert n.type == Notification.TYPE_APPOINTMENT_REQUEST
    assert n.related_id == appointment.id


def test_booking_accepts_meridiem_time(client_for, patient, doctor, schedule, next_week):
    r = client_for(patient).post(reverse('patient_appointments'), booking(doctor, next_week, at='11:00 AM'),
                                 format='json')
    assert r.status_code == 201
    assert r.data['data']['time'] == '11:00'


def test_double_booking_is_rejected(client_for, patient, other_patient, doctor, schedule, next_week):
    first = client_for(patient).post(reverse('patient_appointments'), booking(doctor, next_week), format='json')
    assert first.status_code == 201
    second = client_for(other_patient).post(reverse('patient_appointments'), booking(doctor, next_week),
                                            format='json')
    assert second.status_code == 400
    assert second.data['ok'] is False
    assert second.data['error']['code'] == 'slot_unavailable'
    assert Appointment.objects.count() == 1


def test_booking_outside_schedule_or_in_past(client_for, patient, doctor, schedule, next_week):
    c = client_for(patient)
    r = c.post(reverse('patient_appointments'), booking(doctor, next_week, at='15:00'), format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'slot_unavailable'

    yesterday = next_week - datetime.timedelta(days=8)
    r = c.post(reverse('patient_appointments'), booking(doctor, yesterday), format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'booking_error'


def test_booking_requires_reason_and_patient_role(client_for, patient, doctor, schedule, next_week):
    r = client_for(patient).post(reverse('patient_appointments'), booking(doctor, next_week, reason='  '),
                                 format='json')
    assert r.status_code == 400
    r = client_for(doctor).post(reverse('patient_appointments'), booking(doctor, next_week), format='json')
    assert r.status_code == 403


def test_booking_with_service_uses_its_price_and_length(client_for, patient, doctor, schedule, next_week):
    service = DoctorService.objects.create(doctor=doctor, name='Short visit', price=Decimal('250.00'),
                                           duration_minutes=30)
    r = client_for(patient).post(reverse('patient_appointments'),
                                 booking(doctor, next_week, at='09:30', service_id=service.id), format='json')
    assert r.status_code == 201
    assert r.data['data']['fee'] == '250.00'
    assert r.data['data']['service']['name'] == 'Short visit'


def test_lost_race_surfaces_as_slot_unavailable(monkeypatch, patient, other_patient, doctor, schedule, next_week):
    svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(10), reason='first')
    # the availability check passes but the unique constraint still fires
    monkeypatch.setattr(svc, 'is_slot_available', lambda *a, **k: True)
    with pytest.raises(SlotUnavailable):
        svc.book_appointment(other_patient, doctor_id=doctor.id, day=next_week, at=datetime.time(10),
                             reason='second')
    assert Appointment.objects.filter(doctor=doctor, appointment_date=next_week).count() == 1


def test_doctor_moves_appointment_through_statuses(client_for, patient, doctor, schedule, next_week):
    a = svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9), reason='visit')
    c = client_for(doctor)

    r = c.post(reverse('appointment_status', args=[a.id]), {'status': 'completed'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_transition'

    r = c.post(reverse('appointment_status', args=[a.id]), {'status': 'confirmed', 'notes': 'see you'},
               format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'confirmed'
    confirmed = Notification.objects.get(user=patient, type=Notification.TYPE_APPOINTMENT_CONFIRMED)
    assert 'see you' in confirmed.message

    r = c.post(reverse('appointment_status', args=[a.id]), {'status': 'completed'}, format='json')
    assert r.status_code == 200
    a.refresh_from_db()
    assert a.status == 'completed'
    assert a.completed_at is not None

    r = c.post(reverse('appointment_status', args=[a.id]), {'status': 'cancelled'}, format='json')
    assert r.status_code == 400

    detail = c.get(reverse('appointment_detail', args=[a.id]))
    assert [h['to'] for h in detail.data['data']['history']] == ['pending', 'confirmed', 'completed']


def test_status_change_is_scoped(client_for, patient, doctor, other_doctor, staff, schedule, next_week):
    a = svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9), reason='visit')
    r = client_for(other_doctor).post(reverse('appointment_status', args=[a.id]), {'status': 'confirmed'},
                                      format='json')
    assert r.status_code == 404
    r = client_for(patient).post(reverse('appointment_status', args=[a.id]), {'status': 'confirmed'},
                                 format='json')
    assert r.status_code == 403
    r = client_for(staff).post(reverse('appointment_status', args=[a.id]), {'status': 'cancelled'},
                               format='json')
    assert r.status_code == 200
    assert Notification.objects.filter(user=patient, type=Notification.TYPE_APPOINTMENT_CANCELLED).exists()


def test_patient_cancel_frees_the_slot(client_for, patient, other_patient, doctor, schedule, next_week):
    a = svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(10), reason='visit')

    # another patient's appointment looks the same as a missing one
    r = client_for(other_patient).post(reverse('patient_cancel', args=[a.id]), {}, format='json')
    assert r.status_code == 404
    assert client_for(other_patient).get(reverse('appointment_detail', args=[a.id])).status_code == 404

    r = client_for(patient).post(reverse('patient_cancel', args=[a.id]), {'reason': 'feeling better'},
                                 format='json')
    assert r.status_code == 200
    assert r.data['data']['status'] == 'cancelled'
    assert Notification.objects.filter(user=doctor, type=Notification.TYPE_APPOINTMENT_CANCELLED).exists()

    r = client_for(patient).post(reverse('patient_cancel', args=[a.id]), {}, format='json')
    assert r.status_code == 400

    rebook = client_for(other_patient).post(reverse('patient_appointments'), booking(doctor, next_week),
                                            format='json')
    assert rebook.status_code == 201


def test_lists_are_scoped_and_paginated(client_for, patient, other_patient, doctor, staff, schedule, next_week):
    for hour, who in ((9, patient), (10, patient), (11, other_patient)):
        svc.book_appointment(who, doctor_id=doctor.id, day=next_week, at=datetime.time(hour), reason='visit')

    mine = client_for(patient).get(reverse('patient_appointments'))
    assert mine.status_code == 200
    assert mine.data['pagination']['total'] == 2

    doc = client_for(doctor).get(reverse('doctor_appointments'), {'page': 1, 'pageSize': 2})
    assert doc.data['pagination'] == {'total': 3, 'page': 1, 'pageSize': 2}
    assert len(doc.data['data']) == 2

    pending = client_for(doctor).get(reverse('doctor_pending_count'))
    assert pending.data['count'] == 3

    everything = client_for(staff).get(reverse('staff_appointments'), {'q': 'liza'})
    assert everything.data['pagination']['total'] == 1

    upcoming = client_for(patient).get(reverse('patient_upcoming'))
    assert [a['time'] for a in upcoming.data['data']] == ['09:00', '10:00']


def test_slot_endpoints(client_for, patient, doctor, schedule, next_week):
    svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(10), reason='visit')
    c = client_for(patient)
    r = c.get(reverse('slots_view'), {'doctor_id': doctor.id, 'date': next_week.isoformat()})
    assert r.status_code == 200
    assert r.data['slots'] == ['09:00', '11:00']
    r = c.get(reverse('booked_slots_view'), {'doctor_id': doctor.id, 'date': next_week.isoformat()})
    assert r.data['booked'] == ['10:00']
    r = c.get(reverse('slots_view'), {'doctor_id': 9999, 'date': next_week.isoformat()})
    assert r.status_code == 404


def test_appointment_pdf(client_for, patient, doctor, schedule, next_week):
    a = svc.book_appointment(patient, doctor_id=doctor.id, day=next_week, at=datetime.time(9), reason='visit')
    r = client_for(patient).get(reverse('appointment_pdf', args=[a.id]))
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert r.content.startswith(b'%PDF')
