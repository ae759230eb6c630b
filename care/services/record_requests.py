"""
Patient requests for access to their medical and laboratory records.

A patient asks for a record; staff approve (granting access for a
limited number of days) or deny with a reason.  Only pending requests
can be decided.
"""
import datetime
import logging
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from care.exceptions import InvalidTransition
from care.models import Notification, PatientRecord, RecordRequest, User
from care.services.audit import log_action
from care.services.notifications import notify

logger = logging.getLogger(__name__)


def serialize_request(r: RecordRequest, now: Optional[datetime.datetime] = None) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'patientName': r.patient.display_name,
        'recordType': r.record_type,
        'recordId': r.record_id,
        'reason': r.request_reason,
        'status': r.status,
        'approvedBy': r.approved_by.display_name if r.approved_by_id else None,
        'approvedAt': r.approved_at.isoformat() if r.approved_at else None,
        'deniedReason': r.denied_reason or None,
        'expiresAt': r.expires_at.isoformat() if r.expires_at else None,
        'expired': r.is_expired(now),
        'createdAt': r.created_at.isoformat(),
    }


def _record_type_for(record: PatientRecord) -> str:
    if record.record_type == PatientRecord.TYPE_LABORATORY:
        return RecordRequest.TYPE_LAB
    return RecordRequest.TYPE_MEDICAL


def create_request(patient: User, *, record_id: int, reason: str,
                   now: Optional[datetime.datetime] = None) -> RecordRequest:
    now = now or timezone.now()
    record = PatientRecord.objects.filter(id=record_id, patient=patient).first()
    if not record:
        raise NotFound('record not found')
    open_request = RecordRequest.objects.filter(record=record, patient=patient).filter(
        Q(status=RecordRequest.STATUS_PENDING)
        | Q(status=RecordRequest.STATUS_APPROVED, expires_at__gt=now)
    ).exists()
    if open_request:
        raise ValidationError({'record_id': 'a request for this record is already pending or approved'})
    req = RecordRequest.objects.create(
        patient=patient,
        record=record,
        record_type=_record_type_for(record),
        request_reason=reason,
    )
    log_action(user=patient, action='record_request', object_type='record_request', object_id=req.id,
               detail={'recordId': record.id})
    return req


@transaction.atomic
def decide_request(actor: User, req: RecordRequest, *, approve: bool, reason: str = '',
                   days: Optional[int] = None, now: Optional[datetime.datetime] = None) -> RecordRequest:
    now = now or timezone.now()
    req = RecordRequest.objects.select_for_update().select_related('patient').get(pk=req.pk)
    if req.status != RecordRequest.STATUS_PENDING:
        raise InvalidTransition(f'request is already {req.status}')
    if approve:
        req.status = RecordRequest.STATUS_APPROVED
        req.approved_at = now
        req.expires_at = now + datetime.timedelta(days=days or settings.RECORD_ACCESS_DAYS)
        message = f"Your record access request was approved until {timezone.localtime(req.expires_at):%Y-%m-%d}."
    else:
        if not (reason or '').strip():
            raise ValidationError({'reason': 'a reason is required to deny a request'})
        req.status = RecordRequest.STATUS_DENIED
        req.denied_reason = reason.strip()
        message = f"Your record access request was denied. Reason: {req.denied_reason}"
    req.approved_by = actor
    req.save()
    notify(
        req.patient,
        Notification.TYPE_RECORD_REQUEST_UPDATE,
        'Record Request Approved' if approve else 'Record Request Denied',
        message,
        related=req,
        related_type='record_request',
        data={'request_id': req.id, 'record_id': req.record_id, 'status': req.status},
    )
    log_action(user=actor, action='record_request_decide', object_type='record_request', object_id=req.id,
               detail={'status': req.status})
    logger.info('record request %s %s by %s', req.id, req.status, actor.id)
    return req


def granted_record(patient: User, request_id: int, now: Optional[datetime.datetime] = None) -> PatientRecord:
    """The record behind an approved, unexpired request of ``patient``."""
    req = RecordRequest.objects.select_related('record').filter(id=request_id, patient=patient).first()
    if not req:
        raise NotFound('request not found')
    if not req.grants_access(now):
        raise PermissionDenied('access to this record has not been granted or has expired')
    return req.record


def expired_approvals(now: Optional[datetime.datetime] = None):
    now = now or timezone.now()
    return RecordRequest.objects.filter(status=RecordRequest.STATUS_APPROVED, expires_at__lte=now)
