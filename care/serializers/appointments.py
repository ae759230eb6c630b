import bleach
from rest_framework import serializers

from care.models import Appointment
from care.services.slots import parse_time


class TimeInputField(serializers.Field):
    """Accepts ``14:30``, ``14:30:00`` or ``02:30 PM``."""

    def to_internal_value(self, data):
        try:
            return parse_time(data)
        except ValueError:
            raise serializers.ValidationError('time must look like HH:MM or HH:MM AM')

    def to_representation(self, value):
        return value.strftime('%H:%M')


class BookAppointmentSerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField(min_value=1)
    appointment_date = serializers.DateField()
    appointment_time = TimeInputField()
    reason = serializers.CharField(max_length=2000)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    service_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_reason(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('reason is required')
        return v

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Appointment.STATUS_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Appointment.STATUS_CHOICES], required=False)
    date = serializers.DateField(required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    q = serializers.CharField(max_length=64, required=False)
    upcoming = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class SlotQuerySerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    service_id = serializers.IntegerField(min_value=1, required=False)
