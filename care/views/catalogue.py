"""
Service catalogue and doctor directory.

Hospital services are public; doctors manage their own billable
services; the directory lists doctors that patients can book.
"""
from __future__ import annotations

from django.core.cache import cache
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from care.models import DoctorService, HospitalService, User
from care.permissions import IsAdminRole, IsDoctorRole
from care.serializers.misc import DoctorListQuerySerializer, HospitalServiceSerializer, ServiceSerializer
from care.services import catalogue as svc
from care.services.audit import log_action

PUBLIC_SERVICES_CACHE_KEY = 'services:public'


@api_view(['GET'])
@permission_classes([AllowAny])
def public_services(request):
    cached = cache.get(PUBLIC_SERVICES_CACHE_KEY)
    if cached:
        return Response(cached)
    payload = {'ok': True, 'data': [svc.serialize_hospital_service(s) for s in svc.active_hospital_services()]}
    cache.set(PUBLIC_SERVICES_CACHE_KEY, payload, 300)
    return Response(payload)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_services(request):
    if request.method == 'GET':
        qs = HospitalService.objects.order_by('category', 'name')
        return Response({'ok': True, 'data': [svc.serialize_hospital_service(s) for s in qs]})
    s = HospitalServiceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    service = HospitalService.objects.create(**s.validated_data)
    cache.delete(PUBLIC_SERVICES_CACHE_KEY)
    log_action(user=request.user, action='service_create', object_type='hospital_service', object_id=service.id)
    return Response({'ok': True, 'data': svc.serialize_hospital_service(service)}, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_service_detail(request, pk: int):
    service = get_object_or_404(HospitalService, pk=pk)
    cache.delete(PUBLIC_SERVICES_CACHE_KEY)
    if request.method == 'DELETE':
        service.delete()
        log_action(user=request.user, action='service_delete', object_type='hospital_service', object_id=pk)
        return Response({'ok': True})
    s = HospitalServiceSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    for field, value in s.validated_data.items():
        setattr(service, field, value)
    service.save()
    log_action(user=request.user, action='service_update', object_type='hospital_service', object_id=pk)
    return Response({'ok': True, 'data': svc.serialize_hospital_service(service)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def my_services(request):
    if request.method == 'GET':
        qs = svc.doctor_services(request.user, active_only=False)
        return Response({'ok': True, 'data': [svc.serialize_doctor_service(s) for s in qs]})
    s = ServiceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    service = DoctorService.objects.create(doctor=request.user, **s.validated_data)
    return Response({'ok': True, 'data': svc.serialize_doctor_service(service)}, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def my_service_detail(request, pk: int):
    service = get_object_or_404(DoctorService, pk=pk, doctor=request.user)
    if request.method == 'DELETE':
        service.delete()
        return Response({'ok': True})
    s = ServiceSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    for field, value in s.validated_data.items():
        setattr(service, field, value)
    service.save()
    return Response({'ok': True, 'data': svc.serialize_doctor_service(service)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctors(request):
    """
    Bookable doctors.
    Query params:
      - q: name, username or specialty contains
      - specialty: exact specialty
      - page, pageSize: pagination (optional)
    """
    q = DoctorListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    page, page_size = vd.get('page'), vd.get('pageSize')
    data, total = svc.list_doctors(q=vd.get('q'), specialty=vd.get('specialty'), page=page, page_size=page_size)
    return Response({'ok': True, 'data': data,
                     'pagination': {'total': total, 'page': page or 1, 'pageSize': page_size or total}})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_detail(request, pk: int):
    doctor = get_object_or_404(User.objects.select_related('doctor_profile'), pk=pk, role=User.ROLE_DOCTOR,
                               is_active=True)
    return Response({'ok': True, 'data': svc.serialize_doctor(doctor)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_services(request, pk: int):
    doctor = get_object_or_404(User, pk=pk, role=User.ROLE_DOCTOR, is_active=True)
    return Response({'ok': True, 'data': [svc.serialize_doctor_service(s) for s in svc.doctor_services(doctor)]})
