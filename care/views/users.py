"""
Registration, own profile and administrator user management.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from care.models import User
from care.permissions import IsAdminRole
from care.serializers.auth import (
    AdminUserSerializer,
    AdminUserUpdateSerializer,
    ChangePasswordSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    UserListQuerySerializer,
)
from care.services import accounts
from care.views.common import paginated


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    """Self registration; always creates a patient account."""
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.register_patient(**s.to_service_kwargs())
    return Response({'ok': True, 'user': accounts.profile_payload(user)}, status=status.HTTP_201_CREATED)


register_view.cls.throttle_scope = 'register'


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile_view(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': accounts.profile_payload(request.user)})
    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = accounts.update_profile(request.user, dict(s.validated_data))
    return Response({'ok': True, 'data': accounts.profile_payload(user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.change_password(request.user, s.validated_data['old_password'], s.validated_data['new_password'])
    return Response({'ok': True})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_users(request):
    """List users (``role``, ``q``, ``active`` filters) or create one of any role."""
    if request.method == 'POST':
        s = AdminUserSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = accounts.create_user(actor=request.user, **s.to_service_kwargs())
        return Response({'ok': True, 'data': accounts.profile_payload(user)}, status=status.HTTP_201_CREATED)
    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = accounts.search_users(role=vd.get('role'), q=vd.get('q'), active=vd.get('active'))
    return paginated(qs, accounts.profile_payload, page=vd.get('page'), page_size=vd.get('pageSize'))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_user_detail(request, pk: int):
    user = get_object_or_404(User, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': accounts.profile_payload(user)})
    if request.method == 'DELETE':
        hard = request.query_params.get('hard') in ('1', 'true')
        accounts.remove_user(request.user, user, hard=hard)
        return Response({'ok': True})
    s = AdminUserUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = accounts.update_profile(user, dict(s.validated_data), actor=request.user)
    return Response({'ok': True, 'data': accounts.profile_payload(user)})
