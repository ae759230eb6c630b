import bleach
from rest_framework import serializers


class Base64FileSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    data = serializers.CharField()


class UploadSerializer(serializers.Serializer):
    base64_files = Base64FileSerializer(many=True, required=False)
    record_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class ServiceSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=160)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    duration_minutes = serializers.IntegerField(min_value=5, max_value=480, required=False, default=30)
    is_active = serializers.BooleanField(required=False, default=True)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('name is required')
        return v

    def validate_description(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class HospitalServiceSerializer(ServiceSerializer):
    category = serializers.CharField(required=False, allow_blank=True, max_length=80, default='')


class NotificationListQuerySerializer(serializers.Serializer):
    unread = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class DoctorListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)
    specialty = serializers.CharField(max_length=120, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class ReportQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['appointments', 'patients', 'financial', 'summary'])
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'end date must not be before start date'})
        return attrs
