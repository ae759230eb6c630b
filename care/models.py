"""
Database models for the clinic backend.

These models capture the core concepts of the system: users and their
role specific profiles, the service catalogue, doctor schedules,
appointments, patient records with prescriptions and laboratory
results, uploaded files, notifications, record access requests and
receipts.
"""
from __future__ import annotations

import datetime
import os
import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.utils import timezone


class User(AbstractUser):
    """Custom user model carrying the clinic role.

    Roles: 'patient', 'doctor', 'staff' (clinical staff) and 'admin'.
    Role specific data lives in :class:`PatientProfile` and
    :class:`DoctorProfile`.
    """
    ROLE_PATIENT = 'patient'
    ROLE_DOCTOR = 'doctor'
    ROLE_STAFF = 'staff'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_STAFF, 'Clinical staff'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=30, blank=True)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class PatientProfile(models.Model):
    """Demographic information for a patient user."""
    SEX_CHOICES = [('M', 'Male'), ('F', 'Female'), ('O', 'Other')]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    reference_number = models.CharField(max_length=32, unique=True, blank=True, null=True)
    birth_date = models.DateField(null=True, blank=True)
    sex = models.CharField(max_length=1, choices=SEX_CHOICES, blank=True)
    address = models.CharField(max_length=255, blank=True)
    blood_type = models.CharField(max_length=5, blank=True)
    allergies = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=120, blank=True)

    def __str__(self) -> str:
        return f"{self.user.username} ({self.reference_number or '-'})"


def _doctor_image_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"doctors/{instance.user_id}/{uuid.uuid4().hex}{ext}"


class DoctorProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    specialty = models.CharField(max_length=120, default='General Physician')
    license_number = models.CharField(max_length=64, blank=True)
    bio = models.TextField(blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    profile_image = models.ImageField(upload_to=_doctor_image_upload, blank=True, null=True)

    def __str__(self) -> str:
        return f"Dr. {self.user.display_name} ({self.specialty})"


# ---------------------------------------------------------------------------
# Service catalogue
# ---------------------------------------------------------------------------

class HospitalService(models.Model):
    """A service offered by the clinic, shown on the public landing page."""
    name = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=80, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    duration_minutes = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class DoctorService(models.Model):
    """A billable service a doctor offers, selectable at booking time."""
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='services')
    name = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    duration_minutes = models.PositiveIntegerField(default=30)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.doctor_id})"


# ---------------------------------------------------------------------------
# Schedules & appointments
# ---------------------------------------------------------------------------

class DoctorSchedule(models.Model):
    """A working window of a doctor.

    Weekly windows repeat on ``day_of_week`` (0=Sunday .. 6=Saturday).
    When ``specific_date`` is set the window applies to that date only.
    """
    APPROVAL_PENDING = 'pending'
    APPROVAL_APPROVED = 'approved'
    APPROVAL_REJECTED = 'rejected'
    APPROVAL_CHOICES = [
        (APPROVAL_PENDING, 'Pending'),
        (APPROVAL_APPROVED, 'Approved'),
        (APPROVAL_REJECTED, 'Rejected'),
    ]

    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='schedules')
    day_of_week = models.PositiveSmallIntegerField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    specific_date = models.DateField(null=True, blank=True)
    is_available = models.BooleanField(default=True)
    max_appointments = models.PositiveIntegerField(default=10)
    notes = models.CharField(max_length=255, blank=True)
    approval_status = models.CharField(max_length=10, choices=APPROVAL_CHOICES, default=APPROVAL_PENDING, db_index=True)
    rejection_reason = models.CharField(max_length=255, blank=True)
    reviewed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='reviewed_schedules')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['day_of_week', 'start_time']
        indexes = [
            models.Index(fields=['doctor', 'day_of_week'], name='doctorsched_doctor_dow_idx'),
            models.Index(fields=['doctor', 'specific_date'], name='doctorsched_doctor_date_idx'),
        ]

    def __str__(self) -> str:
        when = self.specific_date.isoformat() if self.specific_date else f"dow={self.day_of_week}"
        return f"Schedule(d={self.doctor_id}, {when}, {self.start_time:%H:%M}-{self.end_time:%H:%M})"


class Appointment(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

    reference_number = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='doctor_appointments')
    service = models.ForeignKey(DoctorService, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments')
    appointment_date = models.DateField()
    appointment_time = models.TimeField()
    reason = models.TextField()
    notes = models.TextField(blank=True)
    doctor_notes = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-appointment_date', '-appointment_time']
        indexes = [
            models.Index(fields=['doctor', 'appointment_date', 'status'], name='appt_doctor_date_status_idx'),
            models.Index(fields=['patient', 'appointment_date'], name='appt_patient_date_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'appointment_time'],
                condition=Q(status__in=['pending', 'confirmed']),
                name='uniq_active_appointment_slot',
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    def __str__(self) -> str:
        return f"{self.reference_number} {self.appointment_date} {self.appointment_time:%H:%M}"


class AppointmentTransition(models.Model):
    """Records a status transition for an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=10, blank=True)
    to_status = models.CharField(max_length=10)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions')
    reason = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class ActiveRecordManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


def _lab_scan_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"lab-results/{datetime.date.today().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}"


class PatientRecord(models.Model):
    """A medical check-up, laboratory or general record of a patient.

    Laboratory bookings are records of type ``laboratory`` that start
    ``pending`` and become ``completed`` once staff enter results.
    Records are soft deleted; ``objects`` hides deleted rows.
    """
    TYPE_MEDICAL_CHECKUP = 'medical_checkup'
    TYPE_LABORATORY = 'laboratory'
    TYPE_MEDICAL_RECORD = 'medical_record'
    TYPE_CHOICES = [
        (TYPE_MEDICAL_CHECKUP, 'Medical check-up'),
        (TYPE_LABORATORY, 'Laboratory'),
        (TYPE_MEDICAL_RECORD, 'Medical record'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    LAB_TYPES = [
        ('blood_test', 'Blood Test'),
        ('urine_test', 'Urine Test'),
        ('x_ray', 'X-Ray'),
        ('ct_scan', 'CT Scan'),
        ('mri', 'MRI'),
        ('ultrasound', 'Ultrasound'),
        ('ecg', 'ECG'),
        ('other', 'Other'),
    ]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='records')
    assigned_doctor = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='assigned_records')
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='created_records')
    appointment = models.ForeignKey(Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='records')
    record_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_MEDICAL_RECORD, db_index=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    record_date = models.DateField(default=datetime.date.today)
    preferred_time = models.TimeField(null=True, blank=True)
    lab_type = models.CharField(max_length=20, choices=LAB_TYPES, blank=True)
    diagnosis = models.TextField(blank=True)
    details = models.JSONField(default=dict, blank=True)
    vital_signs = models.JSONField(default=dict, blank=True)
    lab_results = models.JSONField(default=list, blank=True)
    lab_summary = models.TextField(blank=True)
    lab_scan = models.FileField(upload_to=_lab_scan_upload, max_length=512, blank=True, null=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveRecordManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ['-record_date', '-id']
        indexes = [
            models.Index(fields=['patient', 'record_type', 'status'], name='record_patient_type_status_idx'),
        ]

    def soft_delete(self) -> None:
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at'])

    def __str__(self) -> str:
        return f"Record {self.id} ({self.record_type}) p={self.patient_id}"


class Prescription(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    record = models.ForeignKey(PatientRecord, on_delete=models.CASCADE, related_name='prescriptions')
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='issued_prescriptions')
    medication = models.CharField(max_length=160)
    dosage = models.CharField(max_length=80)
    frequency = models.CharField(max_length=80)
    duration = models.CharField(max_length=80, blank=True)
    instructions = models.TextField(blank=True)
    prescription_date = models.DateField(default=datetime.date.today)
    reference_number = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.reference_number} {self.medication}"


def _medical_file_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return f"medical-records/{instance.owner_id}/{uuid.uuid4().hex}{uuid.uuid4().hex[:8]}{ext}"


class MedicalFile(models.Model):
    """A file uploaded by a patient in support of their records."""
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='medical_files')
    record = models.ForeignKey(PatientRecord, null=True, blank=True, on_delete=models.SET_NULL, related_name='files')
    original_name = models.CharField(max_length=255)
    file = models.FileField(upload_to=_medical_file_upload, max_length=512)
    content_type = models.CharField(max_length=128, blank=True)
    size = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"file {self.id} owner={self.owner_id}"


# ---------------------------------------------------------------------------
# Notifications, requests, receipts
# ---------------------------------------------------------------------------

class Notification(models.Model):
    TYPE_APPOINTMENT_REQUEST = 'appointment_request'
    TYPE_APPOINTMENT_CONFIRMED = 'appointment_confirmed'
    TYPE_APPOINTMENT_CANCELLED = 'appointment_cancelled'
    TYPE_VITAL_SIGNS_SUBMITTED = 'vital_signs_submitted'
    TYPE_LAB_RESULTS_AVAILABLE = 'lab_results_available'
    TYPE_MEDICAL_RECORD_UPDATED = 'medical_record_updated'
    TYPE_LAB_REQUEST = 'lab_request'
    TYPE_RECORD_REQUEST_UPDATE = 'record_request_update'
    TYPE_SCHEDULE_UPDATE = 'schedule_update'
    TYPE_CHOICES = [
        (TYPE_APPOINTMENT_REQUEST, 'Appointment request'),
        (TYPE_APPOINTMENT_CONFIRMED, 'Appointment confirmed'),
        (TYPE_APPOINTMENT_CANCELLED, 'Appointment cancelled'),
        (TYPE_VITAL_SIGNS_SUBMITTED, 'Vital signs submitted'),
        (TYPE_LAB_RESULTS_AVAILABLE, 'Lab results available'),
        (TYPE_MEDICAL_RECORD_UPDATED, 'Medical record updated'),
        (TYPE_LAB_REQUEST, 'Lab request'),
        (TYPE_RECORD_REQUEST_UPDATE, 'Record request update'),
        (TYPE_SCHEDULE_UPDATE, 'Schedule update'),
    ]
    APPOINTMENT_TYPES = (TYPE_APPOINTMENT_REQUEST, TYPE_APPOINTMENT_CONFIRMED, TYPE_APPOINTMENT_CANCELLED)

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    related_type = models.CharField(max_length=32, blank=True)
    related_id = models.PositiveIntegerField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [models.Index(fields=['user', 'read_at'], name='notification_user_read_idx')]

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_as_read(self) -> None:
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=['read_at'])

    def __str__(self) -> str:
        return f"{self.type} -> {self.user_id}"


class RecordRequest(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_DENIED = 'denied'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_DENIED, 'Denied'),
    ]
    TYPE_MEDICAL = 'medical_record'
    TYPE_LAB = 'lab_record'
    TYPE_CHOICES = [(TYPE_MEDICAL, 'Medical record'), (TYPE_LAB, 'Lab record')]

    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='record_requests')
    record_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    record = models.ForeignKey(PatientRecord, on_delete=models.CASCADE, related_name='access_requests')
    request_reason = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    approved_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='decided_record_requests')
    approved_at = models.DateTimeField(null=True, blank=True)
    denied_reason = models.TextField(blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.expires_at and now > self.expires_at)

    def grants_access(self, now=None) -> bool:
        return self.status == self.STATUS_APPROVED and not self.is_expired(now)

    def __str__(self) -> str:
        return f"RecordRequest({self.id}, {self.status})"


class Receipt(models.Model):
    METHOD_CHOICES = [('cash', 'Cash'), ('card', 'Card'), ('insurance', 'Insurance'), ('online', 'Online')]
    STATUS_PAID = 'paid'
    STATUS_PENDING = 'pending'
    STATUS_VOID = 'void'
    STATUS_CHOICES = [(STATUS_PAID, 'Paid'), (STATUS_PENDING, 'Pending'), (STATUS_VOID, 'Void')]

    receipt_number = models.CharField(max_length=32, unique=True)
    appointment = models.OneToOneField(Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='receipt')
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='receipts')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=10, choices=METHOD_CHOICES, default='cash')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PAID, db_index=True)
    notes = models.TextField(blank=True)
    issued_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='issued_receipts')
    issued_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-issued_at']

    def __str__(self) -> str:
        return f"{self.receipt_number} {self.amount}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
