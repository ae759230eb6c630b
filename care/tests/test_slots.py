import datetime

import pytest
from django.utils import timezone

from care.models import Appointment, DoctorSchedule
from care.services.slots import (
    available_slots,
    booked_slots,
    parse_time,
    weekday_index,
    window_slots,
)

pytestmark = pytest.mark.django_db


def book(patient, doctor, day, at, status=Appointment.STATUS_PENDING, ref='APT-1'):
    return Appointment.objects.create(
        reference_number=ref, patient=patient, doctor=doctor,
        appointment_date=day, appointment_time=at, reason='check', status=status,
    )


def test_weekday_index_starts_on_sunday():
    assert weekday_index(datetime.date(2024, 6, 2)) == 0  # Sunday
    assert weekday_index(datetime.date(2024, 6, 3)) == 1
    assert weekday_index(datetime.date(2024, 6, 8)) == 6


def test_parse_time_accepts_24h_and_meridiem():
    assert parse_time('14:30') == datetime.time(14, 30)
    assert parse_time('14:30:00') == datetime.time(14, 30)
    assert parse_time('02:30 PM') == datetime.time(14, 30)
    assert parse_time('9 am') == datetime.time(9, 0)
    with pytest.raises(ValueError):
        parse_time('half past two')


def test_window_slots_only_keeps_whole_slots():
    assert window_slots(datetime.time(9), datetime.time(12), 60) == [
        datetime.time(9), datetime.time(10), datetime.time(11),
    ]
    assert window_slots(datetime.time(9), datetime.time(10, 45), 30) == [
        datetime.time(9), datetime.time(9, 30), datetime.time(10),
    ]
    with pytest.raises(ValueError):
        window_slots(datetime.time(9), datetime.time(10), 0)


def test_slots_for_weekly_window(doctor, schedule, next_week):
    assert available_slots(doctor, next_week) == ['09:00', '10:00', '11:00']


def test_service_duration_sizes_slots(doctor, schedule, next_week):
    slots = available_slots(doctor, next_week, duration=30)
    assert slots[:3] == ['09:00', '09:30', '10:00']
    assert len(slots) == 6


def test_booked_and_cancelled_appointments(doctor, patient, schedule, next_week):
    book(patient, doctor, next_week, datetime.time(10), ref='APT-A')
    book(patient, doctor, next_week, datetime.time(11), status=Appointment.STATUS_CANCELLED, ref='APT-B')
    assert available_slots(doctor, next_week) == ['09:00', '11:00']
    assert booked_slots(doctor, next_week) == ['10:00']


def test_full_window_offers_nothing(doctor, patient, schedule, next_week):
    schedule.max_appointments = 1
    schedule.save()
    book(patient, doctor, next_week, datetime.time(9))
    assert available_slots(doctor, next_week) == []


def test_unapproved_or_unavailable_windows_are_ignored(doctor, schedule, next_week):
    schedule.approval_status = DoctorSchedule.APPROVAL_PENDING
    schedule.save()
    assert available_slots(doctor, next_week) == []
    schedule.approval_status = DoctorSchedule.APPROVAL_APPROVED
    schedule.is_available = False
    schedule.save()
    assert available_slots(doctor, next_week) == []


def test_specific_date_window_adds_to_weekly(doctor, schedule, next_week):
    DoctorSchedule.objects.create(
        doctor=doctor, day_of_week=weekday_index(next_week), specific_date=next_week,
        start_time=datetime.time(14), end_time=datetime.time(16),
        approval_status=DoctorSchedule.APPROVAL_APPROVED,
    )
    other_day = next_week + datetime.timedelta(days=7)
    assert available_slots(doctor, next_week) == ['09:00', '10:00', '11:00', '14:00', '15:00']
    assert available_slots(doctor, other_day) == ['09:00', '10:00', '11:00']


def test_past_and_far_future_days(doctor, schedule, next_week, settings):
    assert available_slots(doctor, next_week - datetime.timedelta(days=14)) == []
    settings.BOOKING_HORIZON_DAYS = 3
    assert available_slots(doctor, next_week) == []


def test_elapsed_slots_of_today_are_dropped(doctor):
    today = timezone.localdate()
    DoctorSchedule.objects.create(
        doctor=doctor, day_of_week=weekday_index(today), specific_date=today,
        start_time=datetime.time(9), end_time=datetime.time(12),
        approval_status=DoctorSchedule.APPROVAL_APPROVED,
    )
    now = timezone.make_aware(datetime.datetime.combine(today, datetime.time(10, 30)))
    assert available_slots(doctor, today, now=now) == ['11:00']
