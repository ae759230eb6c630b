import datetime
import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from care.exceptions import InvalidTransition
from care.models import Notification, PatientRecord, User
from care.services.audit import log_action
from care.services.notifications import notify, notify_many
from care.services.uploads import check_file

logger = logging.getLogger(__name__)

LAB_TYPE_LABELS = dict(PatientRecord.LAB_TYPES)
RESULT_FLAGS = ('normal', 'low', 'high', 'critical', '')


def lab_label(lab_type: str) -> str:
    return LAB_TYPE_LABELS.get(lab_type, lab_type or 'Laboratory')


def lab_records():
    return PatientRecord.objects.filter(record_type=PatientRecord.TYPE_LABORATORY).select_related(
        'patient', 'assigned_doctor'
    )


def book_lab_test(patient: User, *, lab_type: str, preferred_date: datetime.date,
                  preferred_time: Optional[datetime.time] = None, notes: str = '') -> PatientRecord:
    if preferred_date < timezone.localdate():
        raise ValidationError({'preferred_date': 'date must be today or later'})
    if lab_type not in LAB_TYPE_LABELS:
        raise ValidationError({'lab_type': 'unknown laboratory test'})
    with transaction.atomic():
        record = PatientRecord.objects.create(
            patient=patient,
            created_by=patient,
            record_type=PatientRecord.TYPE_LABORATORY,
            status=PatientRecord.STATUS_PENDING,
            record_date=preferred_date,
            preferred_time=preferred_time,
            lab_type=lab_type,
            details={'notes': notes} if notes else {},
        )
        staff = User.objects.filter(role__in=[User.ROLE_STAFF, User.ROLE_ADMIN], is_active=True)
        notify_many(
            staff,
            Notification.TYPE_LAB_REQUEST,
            'New Laboratory Request',
            f"{patient.display_name} booked a {lab_label(lab_type)} for {preferred_date.isoformat()}.",
            related=record,
            related_type='record',
            data={'record_id': record.id, 'patient_id': patient.id, 'lab_type': lab_type},
        )
    log_action(user=patient, action='lab_book', object_type='record', object_id=record.id,
               detail={'labType': lab_type, 'date': preferred_date.isoformat()})
    return record


def _clean_results(items) -> list[dict]:
    out = []
    for i, item in enumerate(items or []):
        if not isinstance(item, dict) or not str(item.get('name') or '').strip():
            raise ValidationError({'lab_results': f'item {i} needs a name'})
        flag = str(item.get('flag') or '').lower()
        if flag not in RESULT_FLAGS:
            raise ValidationError({'lab_results': f'item {i} has an unknown flag {flag!r}'})
        out.append({
            'name': str(item['name']).strip(),
            'value': str(item.get('value') if item.get('value') is not None else ''),
            'unit': str(item.get('unit') or ''),
            'reference_range': str(item.get('reference_range') or ''),
            'flag': flag,
        })
    return out


@transaction.atomic
def record_results(actor: User, record: PatientRecord, *, results, summary: str = '',
                   scan=None, doctor_id: Optional[int] = None) -> PatientRecord:
    """Store results for a laboratory record and mark it completed."""
    if record.record_type != PatientRecord.TYPE_LABORATORY:
        raise ValidationError({'record': 'not a laboratory record'})
    if record.status == PatientRecord.STATUS_CANCELLED:
        raise InvalidTransition('cannot record results for a cancelled lab request')
    cleaned = _clean_results(results)
    if not cleaned and not scan and not summary:
        raise ValidationError({'lab_results': 'results, a summary or a scan are required'})
    if scan is not None:
        check_file(scan.name, getattr(scan, 'content_type', '') or '', scan.size)
        record.lab_scan = scan
    if doctor_id:
        record.assigned_doctor = User.objects.filter(id=doctor_id, role=User.ROLE_DOCTOR).first()
    record.lab_results = cleaned
    record.lab_summary = summary or ''
    record.status = PatientRecord.STATUS_COMPLETED
    record.save()
    notify(
        record.patient,
        Notification.TYPE_LAB_RESULTS_AVAILABLE,
        'Lab Results Available',
        f"Your {lab_label(record.lab_type)} results are now available.",
        related=record,
        related_type='record',
        data={'record_id': record.id, 'lab_type': record.lab_type},
    )
    log_action(user=actor, action='lab_results', object_type='record', object_id=record.id,
               detail={'items': len(cleaned), 'scan': bool(scan)})
    logger.info('lab record %s completed by %s', record.id, actor.id)
    return record


def patient_lab_results(patient: User):
    return lab_records().filter(patient=patient, status=PatientRecord.STATUS_COMPLETED).order_by('-record_date', '-id')
