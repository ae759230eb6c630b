"""
Appointment booking and status management.

Booking re-checks slot availability inside a transaction after locking
the doctor row, so two patients racing for the same slot serialise on
the lock; the conditional unique constraint on (doctor, date, time) is
the final guard.
"""
from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from care.exceptions import BookingError, InvalidTransition, SlotUnavailable
from care.models import Appointment, AppointmentTransition, DoctorService, Notification, User
from care.services.audit import log_action
from care.services.notifications import notify
from care.services.references import appointment_reference
from care.services.slots import is_slot_available

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Appointment.STATUS_PENDING: {Appointment.STATUS_CONFIRMED, Appointment.STATUS_CANCELLED},
    Appointment.STATUS_CONFIRMED: {Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED},
    Appointment.STATUS_COMPLETED: set(),
    Appointment.STATUS_CANCELLED: set(),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, set())


def serialize_appointment(a: Appointment, *, with_history: bool = False) -> dict:
    data = {
        'id': a.id,
        'referenceNumber': a.reference_number,
        'patientId': a.patient_id,
        'patientName': a.patient.display_name,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.display_name,
        'service': {'id': a.service.id, 'name': a.service.name, 'price': str(a.service.price),
                    'durationMinutes': a.service.duration_minutes} if a.service_id else None,
        'date': a.appointment_date.isoformat(),
        'time': a.appointment_time.strftime('%H:%M'),
        'reason': a.reason,
        'notes': a.notes,
        'doctorNotes': a.doctor_notes,
        'status': a.status,
        'fee': str(a.fee),
        'completedAt': a.completed_at.isoformat() if a.completed_at else None,
        'createdAt': a.created_at.isoformat(),
    }
    if with_history:
        data['history'] = [
            {
                'from': t.from_status or None,
                'to': t.to_status,
                'operator': t.operator.username if t.operator else '',
                'reason': t.reason,
                'timestamp': t.timestamp.isoformat(),
            }
            for t in a.transitions.select_related('operator').order_by('timestamp', 'id')
        ]
    return data


def _resolve_fee(doctor: User, service: Optional[DoctorService]) -> Decimal:
    if service is not None:
        return service.price
    profile = getattr(doctor, 'doctor_profile', None)
    return profile.consultation_fee if profile is not None else Decimal('0')


def get_active_doctor(doctor_id: int) -> User:
    doctor = User.objects.filter(id=doctor_id, role=User.ROLE_DOCTOR, is_active=True).first()
    if not doctor:
        raise NotFound('doctor not found')
    return doctor


def book_appointment(patient: User, *, doctor_id: int, day: datetime.date, at: datetime.time, reason: str,
                     notes: str = '', service_id: Optional[int] = None,
                     now: Optional[datetime.datetime] = None) -> Appointment:
    now = timezone.localtime(now or timezone.now())
    if day < now.date():
        raise BookingError('appointment date must be today or later')
    doctor = get_active_doctor(doctor_id)
    service = None
    if service_id:
        service = DoctorService.objects.filter(id=service_id, doctor=doctor, is_active=True).first()
        if not service:
            raise BookingError('service not offered by this doctor')
    duration = service.duration_minutes if service else None

    try:
        with transaction.atomic():
            # serialise concurrent bookings for the same doctor
            User.objects.select_for_update().filter(id=doctor.id).first()
            if not is_slot_available(doctor, day, at, duration=duration, now=now):
                raise SlotUnavailable()
            appointment = Appointment.objects.create(
                reference_number=appointment_reference(),
                patient=patient,
                doctor=doctor,
                service=service,
                appointment_date=day,
                appointment_time=at,
                reason=reason,
                notes=notes or '',
                fee=_resolve_fee(doctor, service),
            )
            AppointmentTransition.objects.create(
                appointment=appointment, from_status='', to_status=Appointment.STATUS_PENDING,
                operator=patient, reason='booked',
            )
            notify(
                doctor,
                Notification.TYPE_APPOINTMENT_REQUEST,
                'New Appointment Request',
                f"Patient {patient.display_name} has requested an appointment on "
                f"{day:%B} {day.day}, {day.year} at {at:%H:%M}.",
                related=appointment,
                related_type='appointment',
                data={
                    'appointment_id': appointment.id,
                    'patient_id': patient.id,
                    'patient_name': patient.display_name,
                    'appointment_date': day.isoformat(),
                    'appointment_time': at.strftime('%H:%M'),
                },
            )
    except IntegrityError:
        logger.info('slot race lost: doctor=%s %s %s', doctor.id, day, at)
        raise SlotUnavailable()

    log_action(user=patient, action='appointment_book', object_type='appointment', object_id=appointment.id,
               detail={'doctorId': doctor.id, 'date': day.isoformat(), 'time': at.strftime('%H:%M')})
    logger.info('appointment %s booked by patient %s', appointment.reference_number, patient.id)
    return appointment


def _status_message(appointment: Appointment, new_status: str, notes: str) -> tuple[str, str, str]:
    day = appointment.appointment_date
    when = f"{day:%B} {day.day}, {day.year}"
    if new_status == Appointment.STATUS_CONFIRMED:
        ntype, title = Notification.TYPE_APPOINTMENT_CONFIRMED, 'Appointment Confirmed'
        message = f"Your appointment with Dr. {appointment.doctor.display_name} on {when} has been confirmed."
    else:
        ntype, title = Notification.TYPE_APPOINTMENT_CANCELLED, 'Appointment Cancelled'
        message = f"Your appointment with Dr. {appointment.doctor.display_name} on {when} has been cancelled."
    if notes:
        message += f" Note: {notes}"
    return ntype, title, message


@transaction.atomic
def change_status(actor: User, appointment: Appointment, new_status: str, *, notes: str = '') -> Appointment:
    """Apply a status change by a doctor or staff member."""
    appointment = Appointment.objects.select_for_update().select_related('patient', 'doctor').get(pk=appointment.pk)
    old = appointment.status
    if not can_transition(old, new_status):
        raise InvalidTransition(f'cannot change status from {old} to {new_status}')
    appointment.status = new_status
    if new_status == Appointment.STATUS_COMPLETED:
        appointment.completed_at = timezone.now()
    if new_status == Appointment.STATUS_CANCELLED:
        appointment.cancelled_by = actor
    if notes:
        appointment.doctor_notes = notes
    appointment.save()
    AppointmentTransition.objects.create(
        appointment=appointment, from_status=old, to_status=new_status, operator=actor, reason=notes[:255],
    )
    if new_status in (Appointment.STATUS_CONFIRMED, Appointment.STATUS_CANCELLED):
        ntype, title, message = _status_message(appointment, new_status, notes)
        notify(appointment.patient, ntype, title, message, related=appointment, related_type='appointment', data={
            'appointment_id': appointment.id,
            'doctor_id': appointment.doctor_id,
            'doctor_name': appointment.doctor.display_name,
            'appointment_date': appointment.appointment_date.isoformat(),
            'status': new_status,
        })
    log_action(user=actor, action='appointment_status', object_type='appointment', object_id=appointment.id,
               detail={'from': old, 'to': new_status})
    logger.info('appointment %s: %s -> %s by %s', appointment.id, old, new_status, actor.id)
    return appointment


@transaction.atomic
def cancel_by_patient(patient: User, appointment: Appointment, *, reason: str = '') -> Appointment:
    if appointment.patient_id != patient.id:
        raise PermissionDenied('forbidden for this appointment')
    appointment = Appointment.objects.select_for_update().select_related('doctor').get(pk=appointment.pk)
    if not appointment.is_active:
        raise InvalidTransition(f'cannot cancel a {appointment.status} appointment')
    old = appointment.status
    appointment.status = Appointment.STATUS_CANCELLED
    appointment.cancelled_by = patient
    appointment.save(update_fields=['status', 'cancelled_by', 'updated_at'])
    AppointmentTransition.objects.create(
        appointment=appointment, from_status=old, to_status=Appointment.STATUS_CANCELLED,
        operator=patient, reason=reason[:255] or 'cancelled by patient',
    )
    day = appointment.appointment_date
    notify(
        appointment.doctor,
        Notification.TYPE_APPOINTMENT_CANCELLED,
        'Appointment Cancelled',
        f"Patient {patient.display_name} cancelled the appointment on {day:%B} {day.day}, {day.year} "
        f"at {appointment.appointment_time:%H:%M}.",
        related=appointment,
        related_type='appointment',
        data={'appointment_id': appointment.id, 'patient_id': patient.id},
    )
    log_action(user=patient, action='appointment_cancel', object_type='appointment', object_id=appointment.id)
    return appointment


def filter_appointments(qs, *, status: Optional[str] = None, day: Optional[datetime.date] = None,
                        doctor_id: Optional[int] = None, q: Optional[str] = None, upcoming: bool = False):
    if status:
        qs = qs.filter(status=status)
    if day:
        qs = qs.filter(appointment_date=day)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if q:
        qs = qs.filter(
            Q(patient__first_name__icontains=q) | Q(patient__last_name__icontains=q)
            | Q(patient__username__icontains=q) | Q(reference_number__icontains=q)
        )
    if upcoming:
        qs = qs.filter(appointment_date__gte=timezone.localdate(), status__in=Appointment.ACTIVE_STATUSES)
        qs = qs.order_by('appointment_date', 'appointment_time')
    return qs.select_related('patient', 'doctor', 'service')
