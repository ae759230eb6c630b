"""
Patient records and prescriptions.

Doctors and staff write records; patients read their own.  Visibility
is decided by :func:`care.services.records.records_visible_to`.
"""
from __future__ import annotations

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Prescription, User
from care.permissions import IsClinician
from care.serializers.records import (
    PrescriptionStatusSerializer,
    RecordCreateSerializer,
    RecordListQuerySerializer,
    RecordUpdateSerializer,
)
from care.services import pdf
from care.services import records as svc
from care.views.common import paginated, pdf_response


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def records(request):
    """List visible records; clinicians may also create one."""
    if request.method == 'POST':
        if not IsClinician().has_permission(request, None):
            raise PermissionDenied('only clinicians can create records')
        s = RecordCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        record = svc.create_record(request.user, **s.validated_data)
        return Response({'ok': True, 'data': svc.serialize_record(record, detail=True)},
                        status=status.HTTP_201_CREATED)

    q = RecordListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.records_visible_to(request.user)
    if vd.get('type'):
        qs = qs.filter(record_type=vd['type'])
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('patientId'):
        qs = qs.filter(patient_id=vd['patientId'])
    if vd.get('q'):
        term = vd['q']
        qs = qs.filter(
            Q(patient__first_name__icontains=term) | Q(patient__last_name__icontains=term)
            | Q(patient__username__icontains=term) | Q(diagnosis__icontains=term)
        )
    qs = qs.order_by('-record_date', '-id')
    return paginated(qs, svc.serialize_record, page=vd.get('page'), page_size=vd.get('pageSize'))


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def record_detail(request, pk: int):
    if request.method == 'GET':
        record = svc.get_record_for(request.user, pk)
        return Response({'ok': True, 'data': svc.serialize_record(record, detail=True)})
    if not IsClinician().has_permission(request, None):
        raise PermissionDenied('only clinicians can change records')
    record = svc.get_record_for_update(request.user, pk)
    if request.method == 'DELETE':
        svc.delete_record(request.user, record)
        return Response({'ok': True})
    s = RecordUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    record = svc.update_record(request.user, record, dict(s.validated_data))
    return Response({'ok': True, 'data': svc.serialize_record(record, detail=True)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinician])
def patient_history(request, patient_id: int):
    patient = get_object_or_404(User, pk=patient_id, role=User.ROLE_PATIENT)
    visible = svc.records_visible_to(request.user).filter(patient=patient).values_list('id', flat=True)
    items = svc.patient_history(patient.id).filter(id__in=list(visible))
    return Response({
        'ok': True,
        'patient': {'id': patient.id, 'name': patient.display_name},
        'data': [svc.serialize_record(r, detail=True) for r in items],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def record_pdf(request, pk: int):
    record = svc.get_record_for(request.user, pk)
    return pdf_response(pdf.render_record(record), f'record-{record.id}.pdf')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def record_prescriptions(request, pk: int):
    record = svc.get_record_for(request.user, pk)
    return Response({'ok': True, 'data': [svc.serialize_prescription(p) for p in record.prescriptions.order_by('id')]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def record_prescriptions_pdf(request, pk: int):
    record = svc.get_record_for(request.user, pk)
    prescriptions = list(record.prescriptions.order_by('id'))
    return pdf_response(pdf.render_prescriptions(record, prescriptions), f'prescriptions-{record.id}.pdf')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_pdf(request, pk: int):
    p = get_object_or_404(Prescription.objects.select_related('record'), pk=pk)
    record = svc.get_record_for(request.user, p.record_id)
    return pdf_response(pdf.render_prescriptions(record, [p]), f'{p.reference_number}.pdf')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def prescription_status(request, pk: int):
    p = get_object_or_404(Prescription, pk=pk)
    svc.get_record_for_update(request.user, p.record_id)
    s = PrescriptionStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    p.status = s.validated_data['status']
    p.save(update_fields=['status'])
    return Response({'ok': True, 'data': svc.serialize_prescription(p)})
