from typing import Optional

from django.db.models import Prefetch, Q

from care.models import DoctorSchedule, DoctorService, HospitalService, User


def serialize_hospital_service(s: HospitalService) -> dict:
    return {
        'id': s.id,
        'name': s.name,
        'description': s.description,
        'category': s.category,
        'price': str(s.price),
        'durationMinutes': s.duration_minutes,
        'isActive': s.is_active,
    }


def serialize_doctor_service(s: DoctorService) -> dict:
    return {
        'id': s.id,
        'doctorId': s.doctor_id,
        'name': s.name,
        'description': s.description,
        'price': str(s.price),
        'durationMinutes': s.duration_minutes,
        'isActive': s.is_active,
    }


def serialize_doctor(u: User, *, with_services: bool = True) -> dict:
    profile = getattr(u, 'doctor_profile', None)
    data = {
        'id': u.id,
        'name': u.display_name,
        'specialty': profile.specialty if profile else 'General Physician',
        'bio': profile.bio if profile else '',
        'consultationFee': str(profile.consultation_fee) if profile else '0.00',
        'profileImage': profile.profile_image.url if profile and profile.profile_image else None,
    }
    if with_services:
        data['services'] = [serialize_doctor_service(s) for s in u.services.all() if s.is_active]
    return data


def list_doctors(*, q: Optional[str] = None, specialty: Optional[str] = None, scheduled_only: bool = True,
                 page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[list[dict], int]:
    """Active doctors, by default only those with an approved, available schedule."""
    qs = User.objects.filter(role=User.ROLE_DOCTOR, is_active=True).select_related('doctor_profile').prefetch_related(
        Prefetch('services', queryset=DoctorService.objects.filter(is_active=True).order_by('name'))
    )
    if scheduled_only:
        qs = qs.filter(
            schedules__approval_status=DoctorSchedule.APPROVAL_APPROVED, schedules__is_available=True,
        ).distinct()
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(username__icontains=q)
            | Q(doctor_profile__specialty__icontains=q)
        )
    if specialty:
        qs = qs.filter(doctor_profile__specialty__iexact=specialty)
    qs = qs.order_by('first_name', 'last_name', 'id')
    total = qs.count()
    if page and page_size:
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]
    return [serialize_doctor(u) for u in qs], total


def doctor_services(doctor: User, *, active_only: bool = True):
    qs = DoctorService.objects.filter(doctor=doctor)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.order_by('name')


def active_hospital_services(category: Optional[str] = None):
    qs = HospitalService.objects.filter(is_active=True)
    if category:
        qs = qs.filter(category__iexact=category)
    return qs.order_by('category', 'name')
