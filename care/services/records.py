import logging
from typing import Optional

import bleach
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from care.models import Appointment, AppointmentTransition, Notification, PatientRecord, Prescription, User
from care.services.audit import log_action
from care.services.notifications import notify, notify_many
from care.services.references import prescription_reference

logger = logging.getLogger(__name__)

VITAL_SIGN_KEYS = (
    'blood_pressure', 'heart_rate', 'temperature', 'respiratory_rate',
    'weight', 'height', 'oxygen_saturation',
)
PRESCRIPTION_FIELDS = ('medication', 'dosage', 'frequency', 'duration', 'instructions')


def clean_text(value: Optional[str]) -> str:
    return bleach.clean((value or '').strip(), strip=True)


def serialize_prescription(p: Prescription) -> dict:
    return {
        'id': p.id,
        'recordId': p.record_id,
        'referenceNumber': p.reference_number,
        'medication': p.medication,
        'dosage': p.dosage,
        'frequency': p.frequency,
        'duration': p.duration,
        'instructions': p.instructions,
        'date': p.prescription_date.isoformat(),
        'status': p.status,
        'doctorId': p.doctor_id,
    }


def serialize_record(r: PatientRecord, *, detail: bool = False) -> dict:
    data = {
        'id': r.id,
        'patientId': r.patient_id,
        'patientName': r.patient.display_name,
        'doctorId': r.assigned_doctor_id,
        'doctorName': r.assigned_doctor.display_name if r.assigned_doctor_id else None,
        'type': r.record_type,
        'status': r.status,
        'date': r.record_date.isoformat(),
        'diagnosis': r.diagnosis,
        'appointmentId': r.appointment_id,
        'updatedAt': r.updated_at.isoformat(),
    }
    if r.record_type == PatientRecord.TYPE_LABORATORY:
        data['labType'] = r.lab_type
        data['preferredTime'] = r.preferred_time.strftime('%H:%M') if r.preferred_time else None
    if detail:
        data.update({
            'details': r.details,
            'vitalSigns': r.vital_signs,
            'labResults': r.lab_results,
            'labSummary': r.lab_summary,
            'labScanUrl': r.lab_scan.url if r.lab_scan else None,
            'prescriptions': [serialize_prescription(p) for p in r.prescriptions.order_by('id')],
            'files': [{'id': f.id, 'name': f.original_name, 'url': f.file.url} for f in r.files.all()],
        })
    return data


def records_visible_to(user: User):
    """Records a user may read.

    Patients see their own, doctors see records of patients they treat
    or are assigned to, staff and admins see everything.
    """
    qs = PatientRecord.objects.select_related('patient', 'assigned_doctor')
    role = getattr(user, 'role', '')
    if role == 'patient':
        return qs.filter(patient=user)
    if role == 'doctor':
        return qs.filter(Q(assigned_doctor=user) | Q(patient__appointments__doctor=user)).distinct()
    if role in ('staff', 'admin'):
        return qs
    return qs.none()


def get_record_for(user: User, record_id: int) -> PatientRecord:
    record = records_visible_to(user).filter(id=record_id).first()
    if not record:
        raise NotFound('record not found')
    return record


def records_writable_by(user: User):
    """Records a clinician may change: doctors only those assigned to them."""
    qs = records_visible_to(user)
    if getattr(user, 'role', '') == 'doctor':
        return qs.filter(assigned_doctor=user)
    return qs


def get_record_for_update(user: User, record_id: int) -> PatientRecord:
    record = records_writable_by(user).filter(id=record_id).first()
    if not record:
        raise NotFound('record not found')
    return record


def _clean_vitals(vitals: Optional[dict]) -> dict:
    vitals = vitals or {}
    unknown = set(vitals) - set(VITAL_SIGN_KEYS)
    if unknown:
        raise ValidationError({'vital_signs': f"unknown keys: {', '.join(sorted(unknown))}"})
    return {k: v for k, v in vitals.items() if v not in (None, '')}


def _add_prescriptions(record: PatientRecord, doctor: Optional[User], items: list[dict]) -> list[Prescription]:
    created = []
    for item in items or []:
        created.append(Prescription.objects.create(
            record=record,
            patient=record.patient,
            doctor=doctor,
            reference_number=prescription_reference(),
            **{f: clean_text(item.get(f)) for f in PRESCRIPTION_FIELDS},
        ))
    return created


@transaction.atomic
def create_record(author: User, *, patient_id: int, record_type: str = PatientRecord.TYPE_MEDICAL_RECORD,
                  diagnosis: str = '', details: Optional[dict] = None, vital_signs: Optional[dict] = None,
                  prescriptions: Optional[list] = None, appointment_id: Optional[int] = None,
                  record_date=None, status: str = PatientRecord.STATUS_COMPLETED) -> PatientRecord:
    patient = User.objects.filter(id=patient_id, role=User.ROLE_PATIENT).first()
    if not patient:
        raise NotFound('patient not found')
    appointment = None
    if appointment_id:
        appointment = Appointment.objects.filter(id=appointment_id, patient=patient).first()
        if not appointment:
            raise ValidationError({'appointment_id': 'appointment does not belong to this patient'})
        if author.role == 'doctor' and appointment.doctor_id != author.id:
            raise PermissionDenied('appointment belongs to another doctor')

    doctor = author if author.role == 'doctor' else (appointment.doctor if appointment else None)
    kwargs = {}
    if record_date:
        kwargs['record_date'] = record_date
    record = PatientRecord.objects.create(
        patient=patient,
        assigned_doctor=doctor,
        created_by=author,
        appointment=appointment,
        record_type=record_type,
        status=status,
        diagnosis=clean_text(diagnosis),
        details=details or {},
        vital_signs=_clean_vitals(vital_signs),
        **kwargs,
    )
    _add_prescriptions(record, doctor, prescriptions or [])

    if appointment and appointment.status == Appointment.STATUS_CONFIRMED:
        appointment.status = Appointment.STATUS_COMPLETED
        appointment.completed_at = timezone.now()
        appointment.save(update_fields=['status', 'completed_at', 'updated_at'])
        AppointmentTransition.objects.create(
            appointment=appointment, from_status=Appointment.STATUS_CONFIRMED,
            to_status=Appointment.STATUS_COMPLETED, operator=author, reason=f'record #{record.id}',
        )

    _after_save(author, record, created=True)
    return record


@transaction.atomic
def update_record(author: User, record: PatientRecord, data: dict) -> PatientRecord:
    if 'diagnosis' in data:
        record.diagnosis = clean_text(data['diagnosis'])
    if 'details' in data:
        record.details = data['details'] or {}
    if 'vital_signs' in data:
        record.vital_signs = _clean_vitals(data['vital_signs'])
    if 'status' in data:
        record.status = data['status']
    if 'record_date' in data and data['record_date']:
        record.record_date = data['record_date']
    record.save()
    if data.get('prescriptions'):
        doctor = author if author.role == 'doctor' else record.assigned_doctor
        _add_prescriptions(record, doctor, data['prescriptions'])
    _after_save(author, record, created=False, vitals_changed='vital_signs' in data)
    return record


def _after_save(author: User, record: PatientRecord, *, created: bool, vitals_changed: bool = False) -> None:
    verb = 'created' if created else 'updated'
    notify(
        record.patient,
        Notification.TYPE_MEDICAL_RECORD_UPDATED,
        'Medical Record Updated',
        f"Your medical record from {record.record_date:%B} {record.record_date.day}, {record.record_date.year} was {verb}.",
        related=record,
        related_type='record',
        data={'record_id': record.id, 'record_type': record.record_type},
    )
    if record.vital_signs and (created or vitals_changed) and author.role in ('staff', 'admin') and record.assigned_doctor_id:
        notify_many(
            [record.assigned_doctor],
            Notification.TYPE_VITAL_SIGNS_SUBMITTED,
            'Vital Signs Submitted',
            f"Vital signs for {record.patient.display_name} were recorded by {author.display_name}.",
            related=record,
            related_type='record',
            data={'record_id': record.id, 'patient_id': record.patient_id},
        )
    log_action(user=author, action='record_create' if created else 'record_update', object_type='record',
               object_id=record.id, detail={'type': record.record_type})


def delete_record(author: User, record: PatientRecord) -> None:
    record.soft_delete()
    log_action(user=author, action='record_delete', object_type='record', object_id=record.id)
    logger.info('record %s soft deleted by %s', record.id, author.id)


def patient_history(patient_id: int):
    return PatientRecord.objects.filter(patient_id=patient_id).select_related(
        'patient', 'assigned_doctor'
    ).prefetch_related('prescriptions').order_by('-record_date', '-id')
