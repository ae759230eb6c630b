import datetime
import logging
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from care.exceptions import ScheduleConflict
from care.models import DoctorSchedule, Notification, User
from care.services.audit import log_action
from care.services.notifications import notify
from care.services.slots import applicable_schedules, upcoming_days, weekday_index

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ('day_of_week', 'start_time', 'end_time', 'specific_date', 'is_available', 'max_appointments', 'notes')


def serialize_schedule(s: DoctorSchedule) -> dict:
    return {
        'id': s.id,
        'doctorId': s.doctor_id,
        'dayOfWeek': s.day_of_week,
        'startTime': s.start_time.strftime('%H:%M'),
        'endTime': s.end_time.strftime('%H:%M'),
        'specificDate': s.specific_date.isoformat() if s.specific_date else None,
        'isAvailable': s.is_available,
        'maxAppointments': s.max_appointments,
        'notes': s.notes,
        'approvalStatus': s.approval_status,
        'rejectionReason': s.rejection_reason or None,
    }


def _normalize(data: dict) -> dict:
    data = dict(data)
    if data.get('start_time') and data.get('end_time') and data['end_time'] <= data['start_time']:
        raise ValidationError({'end_time': 'end time must be after start time'})
    if data.get('specific_date'):
        data['day_of_week'] = weekday_index(data['specific_date'])
    elif data.get('day_of_week') is None:
        raise ValidationError({'day_of_week': 'day of week or specific date is required'})
    return data


def find_overlap(doctor: User, data: dict, *, exclude_id: Optional[int] = None) -> Optional[DoctorSchedule]:
    """Return an existing window of ``doctor`` that overlaps ``data``.

    Weekly windows clash with weekly windows on the same weekday; date
    specific windows clash with windows on the same date.
    """
    qs = DoctorSchedule.objects.filter(
        doctor=doctor,
        start_time__lt=data['end_time'],
        end_time__gt=data['start_time'],
    ).exclude(approval_status=DoctorSchedule.APPROVAL_REJECTED)
    if data.get('specific_date'):
        qs = qs.filter(specific_date=data['specific_date'])
    else:
        qs = qs.filter(specific_date__isnull=True, day_of_week=data['day_of_week'])
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.first()


@transaction.atomic
def create_schedule(actor: User, doctor: User, data: dict) -> DoctorSchedule:
    data = _normalize(data)
    clash = find_overlap(doctor, data)
    if clash:
        raise ScheduleConflict(f'overlaps schedule #{clash.id} ({clash.start_time:%H:%M}-{clash.end_time:%H:%M})')
    approved = getattr(actor, 'role', '') in ('staff', 'admin')
    schedule = DoctorSchedule.objects.create(
        doctor=doctor,
        approval_status=DoctorSchedule.APPROVAL_APPROVED if approved else DoctorSchedule.APPROVAL_PENDING,
        reviewed_by=actor if approved else None,
        **{k: v for k, v in data.items() if k in SCHEDULE_FIELDS},
    )
    log_action(user=actor, action='schedule_create', object_type='schedule', object_id=schedule.id,
               detail={'doctorId': doctor.id})
    return schedule


@transaction.atomic
def create_many(actor: User, doctor: User, rows: list[dict]) -> list[DoctorSchedule]:
    """Create several windows at once; any conflict rolls back the whole batch."""
    return [create_schedule(actor, doctor, row) for row in rows]


@transaction.atomic
def update_schedule(actor: User, schedule: DoctorSchedule, data: dict) -> DoctorSchedule:
    merged = {f: getattr(schedule, f) for f in SCHEDULE_FIELDS}
    merged.update(data)
    if 'day_of_week' in data and 'specific_date' not in data:
        merged['specific_date'] = None
    merged = _normalize(merged)
    clash = find_overlap(schedule.doctor, merged, exclude_id=schedule.id)
    if clash:
        raise ScheduleConflict(f'overlaps schedule #{clash.id}')
    for field in SCHEDULE_FIELDS:
        setattr(schedule, field, merged.get(field))
    if getattr(actor, 'role', '') == 'doctor':
        # doctor edits go back through review
        schedule.approval_status = DoctorSchedule.APPROVAL_PENDING
        schedule.rejection_reason = ''
        schedule.reviewed_by = None
    schedule.save()
    log_action(user=actor, action='schedule_update', object_type='schedule', object_id=schedule.id)
    return schedule


def delete_schedule(actor: User, schedule: DoctorSchedule) -> None:
    sid = schedule.id
    schedule.delete()
    log_action(user=actor, action='schedule_delete', object_type='schedule', object_id=sid)


def review_schedule(actor: User, schedule: DoctorSchedule, *, approve: bool, reason: str = '') -> DoctorSchedule:
    if approve:
        schedule.approval_status = DoctorSchedule.APPROVAL_APPROVED
        schedule.rejection_reason = ''
    else:
        if not reason:
            raise ValidationError({'reason': 'a rejection reason is required'})
        schedule.approval_status = DoctorSchedule.APPROVAL_REJECTED
        schedule.rejection_reason = reason
    schedule.reviewed_by = actor
    schedule.save(update_fields=['approval_status', 'rejection_reason', 'reviewed_by', 'updated_at'])
    verdict = 'approved' if approve else 'rejected'
    window = schedule.specific_date.isoformat() if schedule.specific_date else f'weekday {schedule.day_of_week}'
    message = f"Your schedule for {window} {schedule.start_time:%H:%M}-{schedule.end_time:%H:%M} was {verdict}."
    if reason:
        message += f" Reason: {reason}"
    notify(schedule.doctor, Notification.TYPE_SCHEDULE_UPDATE, f'Schedule {verdict}', message, related=schedule)
    log_action(user=actor, action=f'schedule_{verdict}', object_type='schedule', object_id=schedule.id)
    logger.info('schedule %s %s by %s', schedule.id, verdict, actor.id)
    return schedule


def visible_schedules(doctor: User, day: Optional[datetime.date] = None):
    """Approved windows shown to patients: one day, or the coming week."""
    if day is not None:
        return applicable_schedules(doctor, day, approved_only=True)
    today = timezone.localdate()
    week = list(upcoming_days(today, 7))
    return DoctorSchedule.objects.filter(
        doctor=doctor, approval_status=DoctorSchedule.APPROVAL_APPROVED, is_available=True,
    ).filter(
        Q(specific_date__isnull=True) | Q(specific_date__gte=week[0], specific_date__lte=week[-1])
    ).order_by('specific_date', 'day_of_week', 'start_time')
