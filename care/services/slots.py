"""
Appointment slot computation.

A doctor's bookable slots for a day are derived from the approved,
available schedule windows that apply to that day.  Each window is cut
into consecutive slots of ``duration`` minutes; slots already taken by
an active appointment, slots in the past and slots of a window whose
appointment cap is reached are dropped.
"""
from __future__ import annotations

import datetime
from typing import Iterable, Optional

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from care.models import Appointment, DoctorSchedule, User

TIME_FORMATS = ('%H:%M', '%H:%M:%S', '%I:%M %p', '%I:%M%p', '%I %p')


def weekday_index(day: datetime.date) -> int:
    """Return the weekday with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7


def parse_time(value) -> datetime.time:
    """Parse ``09:30``, ``09:30:00`` or ``09:30 AM`` style values."""
    if isinstance(value, datetime.time):
        return value.replace(second=0, microsecond=0)
    text = (str(value) if value is not None else '').strip().upper()
    for fmt in TIME_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f'invalid time: {value!r}')


def format_time(t: datetime.time) -> str:
    return t.strftime('%H:%M')


def applicable_schedules(doctor: User, day: datetime.date, *, approved_only: bool = True):
    """Windows of ``doctor`` that apply on ``day``.

    Date specific windows for ``day`` are returned together with the
    weekly windows of the matching weekday.
    """
    qs = DoctorSchedule.objects.filter(doctor=doctor).filter(
        Q(specific_date=day) | Q(specific_date__isnull=True, day_of_week=weekday_index(day))
    )
    if approved_only:
        qs = qs.filter(approval_status=DoctorSchedule.APPROVAL_APPROVED, is_available=True)
    return qs.order_by('start_time')


def window_slots(start: datetime.time, end: datetime.time, minutes: int) -> list[datetime.time]:
    """Start times of ``minutes`` long slots that fit inside ``[start, end)``."""
    if minutes <= 0:
        raise ValueError('slot length must be positive')
    anchor = datetime.date(2000, 1, 1)
    cursor = datetime.datetime.combine(anchor, start)
    stop = datetime.datetime.combine(anchor, end)
    step = datetime.timedelta(minutes=minutes)
    out = []
    while cursor + step <= stop:
        out.append(cursor.time())
        cursor += step
    return out


def booked_times(doctor: User, day: datetime.date) -> list[datetime.time]:
    return list(
        Appointment.objects.filter(
            doctor=doctor, appointment_date=day, status__in=Appointment.ACTIVE_STATUSES,
        ).order_by('appointment_time').values_list('appointment_time', flat=True)
    )


def booked_slots(doctor: User, day: datetime.date) -> list[str]:
    return [format_time(t) for t in booked_times(doctor, day)]


def _within_horizon(day: datetime.date, today: datetime.date) -> bool:
    return today <= day <= today + datetime.timedelta(days=settings.BOOKING_HORIZON_DAYS)


def available_slot_times(doctor: User, day: datetime.date, *, duration: Optional[int] = None,
                         now: Optional[datetime.datetime] = None) -> list[datetime.time]:
    now = timezone.localtime(now or timezone.now())
    if not _within_horizon(day, now.date()):
        return []
    minutes = int(duration or settings.SLOT_MINUTES)
    taken = booked_times(doctor, day)
    taken_set = set(taken)
    result: set[datetime.time] = set()
    for schedule in applicable_schedules(doctor, day):
        in_window = sum(1 for t in taken if schedule.start_time <= t < schedule.end_time)
        if in_window >= schedule.max_appointments:
            continue
        for slot in window_slots(schedule.start_time, schedule.end_time, minutes):
            if slot in taken_set:
                continue
            if day == now.date() and slot <= now.time():
                continue
            result.add(slot)
    return sorted(result)


def available_slots(doctor: User, day: datetime.date, *, duration: Optional[int] = None,
                    now: Optional[datetime.datetime] = None) -> list[str]:
    return [format_time(t) for t in available_slot_times(doctor, day, duration=duration, now=now)]


def is_slot_available(doctor: User, day: datetime.date, at: datetime.time, *,
                      duration: Optional[int] = None, now: Optional[datetime.datetime] = None) -> bool:
    return at in available_slot_times(doctor, day, duration=duration, now=now)


def upcoming_days(start: datetime.date, days: int = 7) -> Iterable[datetime.date]:
    for offset in range(days + 1):
        yield start + datetime.timedelta(days=offset)
