"""Human readable reference numbers for appointments, prescriptions and receipts."""
import secrets

from django.utils import timezone


def _generate(prefix: str, date_format: str, model, field: str) -> str:
    today = timezone.localdate()
    for _ in range(20):
        candidate = f"{prefix}-{today.strftime(date_format)}-{secrets.randbelow(9000) + 1000}"
        if not model._default_manager.filter(**{field: candidate}).exists():
            return candidate
    # a busy day exhausted the four digit space; widen it
    return f"{prefix}-{today.strftime(date_format)}-{secrets.token_hex(4).upper()}"


def appointment_reference() -> str:
    from care.models import Appointment
    return _generate('APT', '%y%m%d', Appointment, 'reference_number')


def prescription_reference() -> str:
    from care.models import Prescription
    return _generate('RX', '%y%m%d', Prescription, 'reference_number')


def receipt_number() -> str:
    from care.models import Receipt
    return _generate('RCPT', '%Y%m%d', Receipt, 'receipt_number')


def patient_reference() -> str:
    from care.models import PatientProfile
    return _generate('PT', '%Y', PatientProfile, 'reference_number')
