from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import RecordRequest
from care.permissions import IsPatientRole, IsStaffRole
from care.serializers.records import (
    RecordRequestCreateSerializer,
    RecordRequestDecisionSerializer,
    RecordRequestListQuerySerializer,
)
from care.services import record_requests as svc
from care.services.records import serialize_record


def _requests():
    return RecordRequest.objects.select_related('patient', 'approved_by', 'record')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_requests(request):
    if request.method == 'GET':
        qs = _requests().filter(patient=request.user)
        return Response({'ok': True, 'data': [svc.serialize_request(r) for r in qs]})
    s = RecordRequestCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    req = svc.create_request(request.user, record_id=s.validated_data['record_id'], reason=s.validated_data['reason'])
    return Response({'ok': True, 'data': svc.serialize_request(req)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_request_record(request, pk: int):
    """The requested record, while the approval is still valid."""
    record = svc.granted_record(request.user, pk)
    return Response({'ok': True, 'data': serialize_record(record, detail=True)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_requests(request):
    q = RecordRequestListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = _requests()
    if q.validated_data.get('status'):
        qs = qs.filter(status=q.validated_data['status'])
    if q.validated_data.get('type'):
        qs = qs.filter(record_type=q.validated_data['type'])
    return Response({'ok': True, 'data': [svc.serialize_request(r) for r in qs]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_request_detail(request, pk: int):
    req = get_object_or_404(_requests(), pk=pk)
    return Response({'ok': True, 'data': {**svc.serialize_request(req), 'record': serialize_record(req.record)}})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_decide_request(request, pk: int):
    req = get_object_or_404(RecordRequest, pk=pk)
    s = RecordRequestDecisionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    req = svc.decide_request(request.user, req, approve=vd['action'] == 'approve',
                             reason=vd.get('reason', ''), days=vd.get('days'))
    return Response({'ok': True, 'data': svc.serialize_request(req)})
