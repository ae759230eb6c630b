from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import PatientRecord
from care.permissions import IsPatientRole, IsStaffRole
from care.serializers.records import LabBookingSerializer, LabListQuerySerializer, LabResultSerializer
from care.services import labs as svc
from care.services import pdf
from care.services.records import delete_record, serialize_record
from care.views.common import pdf_response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def lab_types(request):
    return Response({'ok': True, 'data': [{'value': v, 'label': label} for v, label in PatientRecord.LAB_TYPES]})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def book_lab(request):
    s = LabBookingSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    record = svc.book_lab_test(request.user, **s.validated_data)
    return Response({'ok': True, 'data': serialize_record(record)}, status=status.HTTP_201_CREATED)


book_lab.cls.throttle_scope = 'booking'


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_lab_results(request):
    return Response({'ok': True, 'data': [serialize_record(r) for r in svc.patient_lab_results(request.user)]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_lab_result_detail(request, pk: int):
    record = get_object_or_404(svc.lab_records(), pk=pk, patient=request.user)
    return Response({'ok': True, 'data': serialize_record(record, detail=True)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def lab_result_pdf(request, pk: int):
    qs = svc.lab_records().filter(status=PatientRecord.STATUS_COMPLETED)
    if request.user.role == 'patient':
        qs = qs.filter(patient=request.user)
    elif request.user.role == 'doctor':
        qs = qs.filter(assigned_doctor=request.user)
    record = get_object_or_404(qs, pk=pk)
    return pdf_response(pdf.render_lab_result(record), f'lab-result-{record.id}.pdf')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_labs(request):
    """Laboratory records, optionally filtered by ``status`` and ``lab_type``."""
    q = LabListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = svc.lab_records()
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    if q.validated_data.get('lab_type'):
        qs = qs.filter(lab_type=q.validated_data['lab_type'])
    return Response({'ok': True, 'data': [serialize_record(r) for r in qs.order_by('record_date', 'id')]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_pending_labs(request):
    qs = svc.lab_records().filter(status=PatientRecord.STATUS_PENDING).order_by('record_date', 'preferred_time')
    return Response({'ok': True, 'data': [serialize_record(r) for r in qs]})


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_lab_detail(request, pk: int):
    record = get_object_or_404(svc.lab_records(), pk=pk)
    if request.method == 'DELETE':
        delete_record(request.user, record)
        return Response({'ok': True})
    return Response({'ok': True, 'data': serialize_record(record, detail=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_lab_results(request, pk: int):
    record = get_object_or_404(svc.lab_records(), pk=pk)
    s = LabResultSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    record = svc.record_results(request.user, record, results=vd.get('lab_results'), summary=vd.get('summary', ''),
                                scan=vd.get('scan'), doctor_id=vd.get('doctor_id'))
    return Response({'ok': True, 'data': serialize_record(record, detail=True)})
