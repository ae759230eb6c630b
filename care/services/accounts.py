"""
Account helpers: registration, profile payloads and user administration.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from rest_framework.exceptions import PermissionDenied, ValidationError

from care.models import DoctorProfile, PatientProfile, User
from care.services.audit import log_action
from care.services.references import patient_reference

logger = logging.getLogger(__name__)

PATIENT_PROFILE_FIELDS = ('birth_date', 'sex', 'address', 'blood_type', 'allergies', 'emergency_contact')
DOCTOR_PROFILE_FIELDS = ('specialty', 'bio', 'license_number', 'consultation_fee')


def _split_name(name: str) -> tuple[str, str]:
    parts = (name or '').strip().split(None, 1)
    if not parts:
        return '', ''
    return parts[0], parts[1] if len(parts) > 1 else ''


def check_password_strength(password: str, user: Optional[User] = None) -> None:
    try:
        validate_password(password, user=user)
    except DjangoValidationError as e:
        raise ValidationError({'password': list(e.messages)})


def _check_unique(username: str, email: str, *, exclude_id: Optional[int] = None) -> None:
    qs = User.objects.all()
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    if username and qs.filter(username__iexact=username).exists():
        raise ValidationError({'username': 'username already taken'})
    if email and qs.filter(email__iexact=email).exists():
        raise ValidationError({'email': 'email already registered'})


@transaction.atomic
def create_user(*, username: str, password: str, role: str = User.ROLE_PATIENT, email: str = '',
                name: str = '', phone: str = '', profile: Optional[dict] = None,
                actor: Optional[User] = None) -> User:
    _check_unique(username, email)
    first, last = _split_name(name)
    user = User(username=username, email=email or '', role=role, phone=phone or '',
                first_name=first, last_name=last)
    check_password_strength(password, user)
    user.set_password(password)
    user.save()
    profile = profile or {}
    if role == User.ROLE_PATIENT:
        PatientProfile.objects.create(
            user=user,
            reference_number=patient_reference(),
            **{k: v for k, v in profile.items() if k in PATIENT_PROFILE_FIELDS and v not in (None, '')},
        )
    elif role == User.ROLE_DOCTOR:
        DoctorProfile.objects.create(
            user=user,
            **{k: v for k, v in profile.items() if k in DOCTOR_PROFILE_FIELDS and v not in (None, '')},
        )
    log_action(user=actor or user, action='user_create', object_type='user', object_id=user.id,
               detail={'role': role, 'self': actor is None})
    logger.info('user %s created with role %s', user.username, role)
    return user


def register_patient(**data) -> User:
    return create_user(role=User.ROLE_PATIENT, **data)


def user_summary(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'name': user.display_name,
        'email': user.email,
        'role': user.role,
    }


def profile_payload(user: User) -> dict:
    data = {
        **user_summary(user),
        'firstName': user.first_name,
        'lastName': user.last_name,
        'phone': user.phone,
        'isActive': user.is_active,
        'dateJoined': user.date_joined.isoformat(),
    }
    patient = getattr(user, 'patient_profile', None) if user.role == User.ROLE_PATIENT else None
    if patient is not None:
        data['patient'] = {
            'referenceNumber': patient.reference_number,
            'birthDate': patient.birth_date.isoformat() if patient.birth_date else None,
            'sex': patient.sex,
            'address': patient.address,
            'bloodType': patient.blood_type,
            'allergies': patient.allergies,
            'emergencyContact': patient.emergency_contact,
        }
    doctor = getattr(user, 'doctor_profile', None) if user.role == User.ROLE_DOCTOR else None
    if doctor is not None:
        data['doctor'] = {
            'specialty': doctor.specialty,
            'bio': doctor.bio,
            'licenseNumber': doctor.license_number,
            'consultationFee': str(doctor.consultation_fee),
            'profileImage': doctor.profile_image.url if doctor.profile_image else None,
        }
    return data


@transaction.atomic
def update_profile(user: User, data: dict, *, actor: Optional[User] = None) -> User:
    if 'email' in data and data['email'] != user.email:
        _check_unique('', data['email'], exclude_id=user.id)
        user.email = data['email']
    if 'name' in data:
        user.first_name, user.last_name = _split_name(data['name'])
    for field in ('first_name', 'last_name', 'phone'):
        if field in data:
            setattr(user, field, data[field] or '')
    if actor is not None and actor.role == User.ROLE_ADMIN:
        if 'role' in data:
            user.role = data['role']
        if 'is_active' in data:
            user.is_active = bool(data['is_active'])
    user.save()

    if user.role == User.ROLE_PATIENT:
        profile, _ = PatientProfile.objects.get_or_create(user=user)
        if not profile.reference_number:
            profile.reference_number = patient_reference()
        for field in PATIENT_PROFILE_FIELDS:
            if field in data:
                setattr(profile, field, data[field] if data[field] is not None else getattr(profile, field))
        profile.save()
    elif user.role == User.ROLE_DOCTOR:
        profile, _ = DoctorProfile.objects.get_or_create(user=user)
        for field in DOCTOR_PROFILE_FIELDS:
            if field in data and data[field] is not None:
                setattr(profile, field, data[field])
        if data.get('profile_image') is not None:
            profile.profile_image = data['profile_image']
        profile.save()

    log_action(user=actor or user, action='user_update', object_type='user', object_id=user.id,
               detail={'fields': sorted(k for k in data if k != 'profile_image')})
    return user


def change_password(user: User, old_password: str, new_password: str) -> None:
    if not user.check_password(old_password):
        raise ValidationError({'old_password': 'current password is incorrect'})
    check_password_strength(new_password, user)
    user.set_password(new_password)
    user.save(update_fields=['password'])
    log_action(user=user, action='password_change', object_type='user', object_id=user.id)


def search_users(*, role: Optional[str] = None, q: Optional[str] = None, active: Optional[bool] = None):
    qs = User.objects.all().order_by('id')
    if role:
        qs = qs.filter(role=role)
    if active is not None:
        qs = qs.filter(is_active=active)
    if q:
        qs = qs.filter(
            Q(username__icontains=q) | Q(first_name__icontains=q)
            | Q(last_name__icontains=q) | Q(email__icontains=q)
        )
    return qs


def remove_user(actor: User, user: User, *, hard: bool = False) -> None:
    if actor.id == user.id:
        raise PermissionDenied('administrators cannot delete their own account')
    uid = user.id
    if hard:
        user.delete()
    else:
        user.is_active = False
        user.save(update_fields=['is_active'])
    log_action(user=actor, action='user_delete' if hard else 'user_deactivate', object_type='user', object_id=uid)
