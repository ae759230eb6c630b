from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import DoctorSchedule, User
from care.permissions import IsDoctorRole, IsStaffRole
from care.serializers.schedules import (
    BulkScheduleSerializer,
    ReviewSerializer,
    ScheduleListQuerySerializer,
    ScheduleSerializer,
    ScheduleUpdateSerializer,
    StaffScheduleSerializer,
)
from care.services import schedules as svc
from care.services.appointments import get_active_doctor


def _data(items):
    return {'ok': True, 'data': [svc.serialize_schedule(s) for s in items]}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def my_schedules(request):
    if request.method == 'GET':
        return Response(_data(DoctorSchedule.objects.filter(doctor=request.user)))
    s = ScheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    schedule = svc.create_schedule(request.user, request.user, s.validated_data)
    return Response({'ok': True, 'data': svc.serialize_schedule(schedule)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def my_schedules_bulk(request):
    s = BulkScheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    created = svc.create_many(request.user, request.user, s.validated_data['schedules'])
    return Response(_data(created), status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def my_schedule_detail(request, pk: int):
    schedule = get_object_or_404(DoctorSchedule, pk=pk, doctor=request.user)
    if request.method == 'DELETE':
        svc.delete_schedule(request.user, schedule)
        return Response({'ok': True})
    s = ScheduleUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    schedule = svc.update_schedule(request.user, schedule, s.validated_data)
    return Response({'ok': True, 'data': svc.serialize_schedule(schedule)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_schedules(request):
    """All schedules (``doctorId``/``status``/``date`` filters); staff created windows are approved."""
    if request.method == 'POST':
        s = StaffScheduleSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = dict(s.validated_data)
        doctor = get_active_doctor(data.pop('doctor_id'))
        schedule = svc.create_schedule(request.user, doctor, data)
        return Response({'ok': True, 'data': svc.serialize_schedule(schedule)}, status=status.HTTP_201_CREATED)
    q = ScheduleListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = DoctorSchedule.objects.select_related('doctor').order_by('doctor_id', 'day_of_week', 'start_time')
    if vd.get('doctorId'):
        qs = qs.filter(doctor_id=vd['doctorId'])
    if vd.get('status'):
        qs = qs.filter(approval_status=vd['status'])
    if vd.get('date'):
        qs = qs.filter(specific_date=vd['date'])
    return Response(_data(qs))


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_schedule_detail(request, pk: int):
    schedule = get_object_or_404(DoctorSchedule, pk=pk)
    if request.method == 'DELETE':
        svc.delete_schedule(request.user, schedule)
        return Response({'ok': True})
    s = ScheduleUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    schedule = svc.update_schedule(request.user, schedule, s.validated_data)
    return Response({'ok': True, 'data': svc.serialize_schedule(schedule)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def review_schedule(request, pk: int):
    schedule = get_object_or_404(DoctorSchedule.objects.select_related('doctor'), pk=pk)
    s = ReviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    schedule = svc.review_schedule(request.user, schedule, approve=s.validated_data['action'] == 'approve',
                                   reason=s.validated_data.get('reason', ''))
    return Response({'ok': True, 'data': svc.serialize_schedule(schedule)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_schedules(request, doctor_id: int):
    """Approved windows of a doctor for ``?date=`` or the coming week."""
    doctor = get_object_or_404(User, pk=doctor_id, role=User.ROLE_DOCTOR, is_active=True)
    q = ScheduleListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response(_data(svc.visible_schedules(doctor, q.validated_data.get('date'))))
