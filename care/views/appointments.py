"""
Appointment endpoints for patients, doctors and clinical staff.

Patients book and cancel their own appointments, doctors move their
appointments through the status table and staff see everything.  Slot
and booked-slot lookups back the booking form.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Appointment, DoctorService
from care.permissions import IsDoctorRole, IsPatientRole, IsStaffRole
from care.serializers.appointments import (
    AppointmentListQuerySerializer,
    BookAppointmentSerializer,
    CancelSerializer,
    SlotQuerySerializer,
    StatusUpdateSerializer,
)
from care.services import appointments as svc
from care.services import pdf
from care.services.slots import available_slots, booked_slots
from care.views.common import paginated, pdf_response


def _list(request, qs):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.filter_appointments(
        qs, status=vd.get('status'), day=vd.get('date'), doctor_id=vd.get('doctorId'),
        q=vd.get('q'), upcoming=vd.get('upcoming'),
    )
    return paginated(qs, svc.serialize_appointment, page=vd.get('page'), page_size=vd.get('pageSize'))


def _scoped(user):
    """Appointments ``user`` may see."""
    qs = Appointment.objects.select_related('patient', 'doctor', 'service')
    if user.role == 'patient':
        return qs.filter(patient=user)
    if user.role == 'doctor':
        return qs.filter(doctor=user)
    return qs


# ---------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def slots_view(request):
    """Free start times for ``doctor_id`` on ``date`` (optionally sized by ``service_id``)."""
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    doctor = svc.get_active_doctor(vd['doctor_id'])
    duration = None
    if vd.get('service_id'):
        service = get_object_or_404(DoctorService, id=vd['service_id'], doctor=doctor, is_active=True)
        duration = service.duration_minutes
    day = vd['date']
    return Response({
        'ok': True,
        'doctorId': doctor.id,
        'date': day.isoformat(),
        'slots': available_slots(doctor, day, duration=duration),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booked_slots_view(request):
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    doctor = svc.get_active_doctor(q.validated_data['doctor_id'])
    day = q.validated_data['date']
    return Response({'ok': True, 'doctorId': doctor.id, 'date': day.isoformat(),
                     'booked': booked_slots(doctor, day)})


# ---------------------------------------------------------------------
# Patient
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_appointments(request):
    if request.method == 'GET':
        return _list(request, _scoped(request.user))
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    appointment = svc.book_appointment(
        request.user,
        doctor_id=vd['doctor_id'],
        day=vd['appointment_date'],
        at=vd['appointment_time'],
        reason=vd['reason'],
        notes=vd.get('notes', ''),
        service_id=vd.get('service_id'),
    )
    return Response({'ok': True, 'data': svc.serialize_appointment(appointment)}, status=status.HTTP_201_CREATED)


patient_appointments.cls.throttle_scope = 'booking'


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_cancel(request, pk: int):
    appointment = get_object_or_404(_scoped(request.user), pk=pk)
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = svc.cancel_by_patient(request.user, appointment, reason=s.validated_data.get('reason', ''))
    return Response({'ok': True, 'data': svc.serialize_appointment(appointment)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_upcoming(request):
    qs = svc.filter_appointments(_scoped(request.user), upcoming=True)[:5]
    return Response({'ok': True, 'data': [svc.serialize_appointment(a) for a in qs]})


# ---------------------------------------------------------------------
# Doctor & staff
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_appointments(request):
    return _list(request, _scoped(request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_pending_count(request):
    count = Appointment.objects.filter(doctor=request.user, status=Appointment.STATUS_PENDING).count()
    return Response({'ok': True, 'count': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_appointments(request):
    return _list(request, _scoped(request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, pk: int):
    appointment = get_object_or_404(_scoped(request.user), pk=pk)
    return Response({'ok': True, 'data': svc.serialize_appointment(appointment, with_history=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_status(request, pk: int):
    """Doctor (own appointments) or staff status change through the transition table."""
    if request.user.role not in ('doctor', 'staff', 'admin'):
        raise PermissionDenied('only doctors and staff can change appointment status')
    appointment = get_object_or_404(_scoped(request.user), pk=pk)
    s = StatusUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = svc.change_status(request.user, appointment, s.validated_data['status'],
                                    notes=s.validated_data.get('notes', ''))
    return Response({'ok': True, 'data': svc.serialize_appointment(appointment)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_pdf(request, pk: int):
    appointment = get_object_or_404(_scoped(request.user), pk=pk)
    return pdf_response(pdf.render_appointment(appointment), f'{appointment.reference_number}.pdf')
