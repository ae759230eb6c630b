import json

import bleach
from rest_framework import serializers

from care.models import PatientRecord, Prescription, Receipt, RecordRequest
from care.serializers.appointments import TimeInputField


class PrescriptionItemSerializer(serializers.Serializer):
    medication = serializers.CharField(max_length=160)
    dosage = serializers.CharField(max_length=80)
    frequency = serializers.CharField(max_length=80)
    duration = serializers.CharField(required=False, allow_blank=True, max_length=80)
    instructions = serializers.CharField(required=False, allow_blank=True)


class VitalSignsSerializer(serializers.Serializer):
    blood_pressure = serializers.RegexField(r'^\d{2,3}/\d{2,3}$', required=False, allow_blank=True)
    heart_rate = serializers.IntegerField(min_value=20, max_value=250, required=False, allow_null=True)
    temperature = serializers.DecimalField(max_digits=4, decimal_places=1, min_value=30, max_value=45,
                                           required=False, allow_null=True, coerce_to_string=False)
    respiratory_rate = serializers.IntegerField(min_value=4, max_value=80, required=False, allow_null=True)
    weight = serializers.DecimalField(max_digits=5, decimal_places=1, min_value=0, required=False,
                                      allow_null=True, coerce_to_string=False)
    height = serializers.DecimalField(max_digits=5, decimal_places=1, min_value=0, required=False,
                                      allow_null=True, coerce_to_string=False)
    oxygen_saturation = serializers.IntegerField(min_value=50, max_value=100, required=False, allow_null=True)

    def to_internal_value(self, data):
        values = super().to_internal_value(data)
        # JSONField storage; decimals go in as floats
        return {k: float(v) if hasattr(v, 'as_tuple') else v for k, v in values.items()}


class RecordCreateSerializer(serializers.Serializer):
    patient_id = serializers.IntegerField(min_value=1)
    record_type = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.TYPE_CHOICES],
                                          default=PatientRecord.TYPE_MEDICAL_RECORD)
    status = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.STATUS_CHOICES],
                                     default=PatientRecord.STATUS_COMPLETED)
    appointment_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    record_date = serializers.DateField(required=False, allow_null=True)
    diagnosis = serializers.CharField(required=False, allow_blank=True, default='')
    details = serializers.DictField(required=False, default=dict)
    vital_signs = VitalSignsSerializer(required=False)
    prescriptions = PrescriptionItemSerializer(many=True, required=False)


class RecordUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.STATUS_CHOICES], required=False)
    record_date = serializers.DateField(required=False, allow_null=True)
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    details = serializers.DictField(required=False)
    vital_signs = VitalSignsSerializer(required=False)
    prescriptions = PrescriptionItemSerializer(many=True, required=False)


class RecordListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)
    type = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.TYPE_CHOICES], required=False)
    status = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.STATUS_CHOICES], required=False)
    patientId = serializers.IntegerField(min_value=1, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)


class LabBookingSerializer(serializers.Serializer):
    lab_type = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.LAB_TYPES])
    preferred_date = serializers.DateField()
    preferred_time = TimeInputField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class LabResultItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    value = serializers.CharField(required=False, allow_blank=True, max_length=64)
    unit = serializers.CharField(required=False, allow_blank=True, max_length=32)
    reference_range = serializers.CharField(required=False, allow_blank=True, max_length=64)
    flag = serializers.ChoiceField(choices=['normal', 'low', 'high', 'critical', ''], required=False)


class LabResultSerializer(serializers.Serializer):
    """Results arrive as JSON or multipart; ``lab_results`` may be a JSON string in the latter."""
    lab_results = serializers.JSONField(required=False, default=list)
    summary = serializers.CharField(required=False, allow_blank=True, default='')
    doctor_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    scan = serializers.FileField(required=False, allow_null=True)

    def validate_lab_results(self, v):
        if isinstance(v, str):
            try:
                v = json.loads(v or '[]')
            except ValueError:
                raise serializers.ValidationError('lab_results must be a JSON list')
        items = LabResultItemSerializer(data=v, many=True)
        items.is_valid(raise_exception=True)
        return [dict(i) for i in items.validated_data]

    def validate_summary(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class LabListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.STATUS_CHOICES], required=False)
    lab_type = serializers.ChoiceField(choices=[c for c, _ in PatientRecord.LAB_TYPES], required=False)


class RecordRequestCreateSerializer(serializers.Serializer):
    record_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=2000)

    def validate_reason(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('reason is required')
        return v


class RecordRequestDecisionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'deny'])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    days = serializers.IntegerField(min_value=1, max_value=90, required=False)


class RecordRequestListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in RecordRequest.STATUS_CHOICES], required=False)
    type = serializers.ChoiceField(choices=[c for c, _ in RecordRequest.TYPE_CHOICES], required=False)


class ReceiptCreateSerializer(serializers.Serializer):
    appointment_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    patient_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=[c for c, _ in Receipt.METHOD_CHOICES], default='cash')
    status = serializers.ChoiceField(choices=[c for c, _ in Receipt.STATUS_CHOICES], default=Receipt.STATUS_PAID)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        if not attrs.get('appointment_id') and not attrs.get('patient_id'):
            raise serializers.ValidationError({'appointment_id': 'an appointment or a patient is required'})
        return attrs


class PrescriptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Prescription.STATUS_CHOICES])
