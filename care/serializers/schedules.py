import bleach
from rest_framework import serializers

from care.models import DoctorSchedule
from care.serializers.appointments import TimeInputField


class ScheduleSerializer(serializers.Serializer):
    day_of_week = serializers.IntegerField(min_value=0, max_value=6, required=False, allow_null=True)
    start_time = TimeInputField()
    end_time = TimeInputField()
    specific_date = serializers.DateField(required=False, allow_null=True)
    is_available = serializers.BooleanField(required=False, default=True)
    max_appointments = serializers.IntegerField(min_value=1, max_value=200, required=False, default=10)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        if attrs['end_time'] <= attrs['start_time']:
            raise serializers.ValidationError({'end_time': 'end time must be after start time'})
        if attrs.get('day_of_week') is None and not attrs.get('specific_date'):
            raise serializers.ValidationError({'day_of_week': 'day of week or specific date is required'})
        return attrs


class ScheduleUpdateSerializer(ScheduleSerializer):
    start_time = TimeInputField(required=False)
    end_time = TimeInputField(required=False)
    is_available = serializers.BooleanField(required=False)
    max_appointments = serializers.IntegerField(min_value=1, max_value=200, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs):
        start, end = attrs.get('start_time'), attrs.get('end_time')
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'end time must be after start time'})
        return attrs


class BulkScheduleSerializer(serializers.Serializer):
    schedules = ScheduleSerializer(many=True, allow_empty=False)


class StaffScheduleSerializer(ScheduleSerializer):
    doctor_id = serializers.IntegerField(min_value=1)


class ReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class ScheduleListQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=[c for c, _ in DoctorSchedule.APPROVAL_CHOICES], required=False)
    date = serializers.DateField(required=False)
