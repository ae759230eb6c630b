import logging
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound, ValidationError

from care.models import Appointment, Receipt, User
from care.services.audit import log_action
from care.services.references import receipt_number

logger = logging.getLogger(__name__)


def serialize_receipt(r: Receipt) -> dict:
    return {
        'id': r.id,
        'receiptNumber': r.receipt_number,
        'appointmentId': r.appointment_id,
        'appointmentReference': r.appointment.reference_number if r.appointment_id else None,
        'patientId': r.patient_id,
        'patientName': r.patient.display_name,
        'amount': str(r.amount),
        'paymentMethod': r.payment_method,
        'status': r.status,
        'notes': r.notes,
        'issuedBy': r.issued_by.display_name if r.issued_by_id else None,
        'issuedAt': r.issued_at.isoformat(),
    }


def issue_receipt(actor: User, *, appointment_id: Optional[int] = None, patient_id: Optional[int] = None,
                  amount: Optional[Decimal] = None, payment_method: str = 'cash',
                  status: str = Receipt.STATUS_PAID, notes: str = '') -> Receipt:
    appointment = None
    if appointment_id:
        appointment = Appointment.objects.select_related('patient').filter(id=appointment_id).first()
        if not appointment:
            raise NotFound('appointment not found')
        if Receipt.objects.filter(appointment=appointment).exists():
            raise ValidationError({'appointment_id': 'a receipt already exists for this appointment'})
        patient = appointment.patient
        if amount is None:
            amount = appointment.fee
    else:
        patient = User.objects.filter(id=patient_id, role=User.ROLE_PATIENT).first() if patient_id else None
        if not patient:
            raise ValidationError({'patient_id': 'a patient or an appointment is required'})
    if amount is None:
        raise ValidationError({'amount': 'amount is required without an appointment'})
    if amount < 0:
        raise ValidationError({'amount': 'amount cannot be negative'})
    try:
        with transaction.atomic():
            receipt = Receipt.objects.create(
                receipt_number=receipt_number(),
                appointment=appointment,
                patient=patient,
                amount=amount,
                payment_method=payment_method,
                status=status,
                notes=notes or '',
                issued_by=actor,
            )
    except IntegrityError:
        raise ValidationError({'appointment_id': 'a receipt already exists for this appointment'})
    log_action(user=actor, action='receipt_issue', object_type='receipt', object_id=receipt.id,
               detail={'amount': str(amount), 'appointmentId': appointment_id})
    logger.info('receipt %s issued for patient %s', receipt.receipt_number, patient.id)
    return receipt


def delete_receipt(actor: User, receipt: Receipt) -> None:
    rid = receipt.id
    receipt.delete()
    log_action(user=actor, action='receipt_delete', object_type='receipt', object_id=rid)
