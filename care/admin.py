"""
Django admin registrations for the clinic models.

Only light configuration is applied: list columns, filters and search
fields good enough to inspect and correct data by hand.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AppointmentTransition,
    AuditEvent,
    DoctorProfile,
    DoctorSchedule,
    DoctorService,
    HospitalService,
    MedicalFile,
    Notification,
    PatientProfile,
    PatientRecord,
    Prescription,
    Receipt,
    RecordRequest,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'is_active', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'reference_number', 'sex', 'birth_date', 'blood_type')
    search_fields = ('user__username', 'user__first_name', 'user__last_name', 'reference_number')


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialty', 'license_number', 'consultation_fee')
    search_fields = ('user__username', 'user__first_name', 'specialty')


@admin.register(HospitalService)
class HospitalServiceAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'price', 'duration_minutes', 'is_active')
    list_filter = ('category', 'is_active')
    search_fields = ('name',)


@admin.register(DoctorService)
class DoctorServiceAdmin(admin.ModelAdmin):
    list_display = ('name', 'doctor', 'price', 'duration_minutes', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name', 'doctor__username')


@admin.register(DoctorSchedule)
class DoctorScheduleAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'day_of_week', 'specific_date', 'start_time', 'end_time', 'approval_status', 'is_available')
    list_filter = ('approval_status', 'is_available', 'day_of_week')
    search_fields = ('doctor__username', 'doctor__first_name')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'reason', 'timestamp')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('reference_number', 'patient', 'doctor', 'appointment_date', 'appointment_time', 'status')
    list_filter = ('status', 'appointment_date')
    search_fields = ('reference_number', 'patient__username', 'doctor__username')
    inlines = [AppointmentTransitionInline]


@admin.register(PatientRecord)
class PatientRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'record_type', 'status', 'record_date', 'assigned_doctor', 'deleted_at')
    list_filter = ('record_type', 'status', 'lab_type')
    search_fields = ('patient__username', 'diagnosis')

    def get_queryset(self, request):
        # soft deleted records stay visible here
        return PatientRecord.all_objects.select_related('patient', 'assigned_doctor')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('reference_number', 'medication', 'patient', 'doctor', 'status', 'prescription_date')
    list_filter = ('status',)
    search_fields = ('reference_number', 'medication', 'patient__username')


@admin.register(MedicalFile)
class MedicalFileAdmin(admin.ModelAdmin):
    list_display = ('id', 'owner', 'original_name', 'content_type', 'size', 'created_at')
    search_fields = ('original_name', 'owner__username')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'type', 'title', 'read_at', 'created_at')
    list_filter = ('type',)
    search_fields = ('user__username', 'title')


@admin.register(RecordRequest)
class RecordRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'record_type', 'status', 'approved_by', 'expires_at')
    list_filter = ('status', 'record_type')
    search_fields = ('patient__username',)


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ('receipt_number', 'patient', 'amount', 'payment_method', 'status', 'issued_at')
    list_filter = ('status', 'payment_method')
    search_fields = ('receipt_number', 'patient__username')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
