"""
Dashboard figures per role and the administrator report downloads.
"""
from __future__ import annotations

import datetime
from decimal import Decimal

from django.db.models import Count, Sum
from django.utils import timezone

from care.models import Appointment, DoctorSchedule, PatientRecord, Receipt, RecordRequest, User
from care.services import pdf
from care.services.appointments import serialize_appointment
from care.services.notifications import unread_count
from care.services.records import serialize_record

REPORT_TYPES = ('appointments', 'patients', 'financial', 'summary')


def patient_dashboard(user: User) -> dict:
    today = timezone.localdate()
    upcoming = Appointment.objects.filter(
        patient=user, appointment_date__gte=today, status__in=Appointment.ACTIVE_STATUSES,
    ).select_related('patient', 'doctor', 'service').order_by('appointment_date', 'appointment_time')[:5]
    labs = PatientRecord.objects.filter(
        patient=user, record_type=PatientRecord.TYPE_LABORATORY, status=PatientRecord.STATUS_COMPLETED,
    ).select_related('patient', 'assigned_doctor')[:5]
    records = PatientRecord.objects.filter(patient=user).exclude(
        record_type=PatientRecord.TYPE_LABORATORY,
    ).select_related('patient', 'assigned_doctor')[:5]
    return {
        'upcomingAppointments': [serialize_appointment(a) for a in upcoming],
        'labResults': [serialize_record(r) for r in labs],
        'records': [serialize_record(r) for r in records],
        'unreadNotifications': unread_count(user),
    }


def doctor_dashboard(user: User) -> dict:
    today = timezone.localdate()
    mine = Appointment.objects.filter(doctor=user)
    todays = mine.filter(appointment_date=today).exclude(status=Appointment.STATUS_CANCELLED).select_related(
        'patient', 'doctor', 'service').order_by('appointment_time')
    return {
        'todayAppointments': [serialize_appointment(a) for a in todays],
        'pendingCount': mine.filter(status=Appointment.STATUS_PENDING).count(),
        'totalPatients': mine.values('patient_id').distinct().count(),
        'upcomingWeek': mine.filter(
            appointment_date__gt=today,
            appointment_date__lte=today + datetime.timedelta(days=7),
            status__in=Appointment.ACTIVE_STATUSES,
        ).count(),
    }


def staff_dashboard(user: User) -> dict:
    today = timezone.localdate()
    todays = Appointment.objects.filter(appointment_date=today).select_related(
        'patient', 'doctor', 'service').order_by('appointment_time')
    return {
        'todayAppointments': [serialize_appointment(a) for a in todays],
        'pendingLabRecords': PatientRecord.objects.filter(
            record_type=PatientRecord.TYPE_LABORATORY, status=PatientRecord.STATUS_PENDING).count(),
        'pendingRecordRequests': RecordRequest.objects.filter(status=RecordRequest.STATUS_PENDING).count(),
        'pendingSchedules': DoctorSchedule.objects.filter(approval_status=DoctorSchedule.APPROVAL_PENDING).count(),
    }


def _revenue(qs) -> Decimal:
    return qs.filter(status=Receipt.STATUS_PAID).aggregate(total=Sum('amount'))['total'] or Decimal('0')


def admin_dashboard(user: User) -> dict:
    users = {row['role']: row['n'] for row in User.objects.values('role').annotate(n=Count('id'))}
    statuses = {row['status']: row['n'] for row in Appointment.objects.values('status').annotate(n=Count('id'))}
    recent = Appointment.objects.select_related('patient', 'doctor', 'service').order_by('-created_at')[:10]
    return {
        'users': {role: users.get(role, 0) for role, _ in User.ROLE_CHOICES},
        'appointments': {s: statuses.get(s, 0) for s, _ in Appointment.STATUS_CHOICES},
        'revenue': str(_revenue(Receipt.objects.all())),
        'recentAppointments': [serialize_appointment(a) for a in recent],
    }


DASHBOARDS = {
    User.ROLE_PATIENT: patient_dashboard,
    User.ROLE_DOCTOR: doctor_dashboard,
    User.ROLE_STAFF: staff_dashboard,
    User.ROLE_ADMIN: admin_dashboard,
}


def build_report(report_type: str, start: datetime.date, end: datetime.date) -> bytes:
    """Render one of :data:`REPORT_TYPES` for ``start``..``end`` inclusive."""
    period = f'{start.isoformat()} to {end.isoformat()}'
    appts = Appointment.objects.filter(appointment_date__range=(start, end)).select_related('patient', 'doctor')

    if report_type == 'appointments':
        by_status = {row['status']: row['n'] for row in appts.values('status').annotate(n=Count('id'))}
        return pdf.render_report(
            'Appointments Report', period,
            {'Total': appts.count(), **{label: by_status.get(s, 0) for s, label in Appointment.STATUS_CHOICES}},
            ['Reference', 'Date', 'Time', 'Patient', 'Doctor', 'Status'],
            ([a.reference_number, a.appointment_date.isoformat(), a.appointment_time.strftime('%H:%M'),
              a.patient.display_name, a.doctor.display_name, a.status]
             for a in appts.order_by('appointment_date', 'appointment_time')),
            [90, 70, 45, 125, 125, 70],
        )

    if report_type == 'patients':
        patients = User.objects.filter(role=User.ROLE_PATIENT, date_joined__date__range=(start, end)).select_related(
            'patient_profile').order_by('date_joined')
        return pdf.render_report(
            'Patients Report', period,
            {'New patients': patients.count(),
             'All patients': User.objects.filter(role=User.ROLE_PATIENT).count()},
            ['Reference', 'Name', 'Email', 'Phone', 'Joined'],
            ([getattr(getattr(p, 'patient_profile', None), 'reference_number', '') or '-', p.display_name,
              p.email, p.phone, p.date_joined.date().isoformat()] for p in patients),
            [90, 130, 150, 80, 70],
        )

    receipts = Receipt.objects.filter(issued_at__date__range=(start, end)).select_related('patient')
    if report_type == 'financial':
        return pdf.render_report(
            'Financial Report', period,
            {'Receipts': receipts.count(), 'Revenue (paid)': _revenue(receipts)},
            ['Receipt', 'Issued', 'Patient', 'Method', 'Status', 'Amount'],
            ([r.receipt_number, timezone.localtime(r.issued_at).date().isoformat(), r.patient.display_name,
              r.payment_method, r.status, r.amount] for r in receipts.order_by('issued_at')),
            [110, 70, 130, 65, 55, 65],
        )

    if report_type == 'summary':
        return pdf.render_report(
            'Summary Report', period,
            {
                'Appointments': appts.count(),
                'Completed appointments': appts.filter(status=Appointment.STATUS_COMPLETED).count(),
                'Cancelled appointments': appts.filter(status=Appointment.STATUS_CANCELLED).count(),
                'New patients': User.objects.filter(role=User.ROLE_PATIENT,
                                                    date_joined__date__range=(start, end)).count(),
                'Lab tests completed': PatientRecord.objects.filter(
                    record_type=PatientRecord.TYPE_LABORATORY, status=PatientRecord.STATUS_COMPLETED,
                    record_date__range=(start, end)).count(),
                'Revenue (paid)': _revenue(receipts),
            },
            [], [], [],
        )

    raise ValueError(f'unknown report type: {report_type}')
