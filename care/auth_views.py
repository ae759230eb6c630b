"""
Authentication views.

Login, token refresh and logout live here rather than in ``care.views``
so that ``care.authentication`` can be loaded by DRF settings without
pulling in any view code.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.db.models import Q
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from care.models import User
from care.serializers.auth import LoginSerializer
from care.services.accounts import user_summary
from care.services.audit import client_ip, log_action

logger = logging.getLogger(__name__)


def _resolve_username(account: str) -> str:
    """Allow login with either the username or the e-mail address."""
    user = User.objects.filter(Q(username__iexact=account) | Q(email__iexact=account)).only('username').first()
    return user.username if user else account


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with username (or e-mail) and password.

    Any ``role`` sent by the client is ignored; the role always comes
    from the stored user.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = s.validated_data['account']
    password = s.validated_data['password']
    ip = client_ip(request)

    user = authenticate(request, username=_resolve_username(account), password=password)
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': account}, request=request)
        logger.info('failed login for %s from %s', account, ip)
        raise ValidationError({'detail': 'invalid username or password'})

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok'}, request=request)

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': user_summary(user),
    })


login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token for a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    data = dict(resp.data)
    if 'access' in data:
        data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    if resp.status_code == 200:
        data['ok'] = True
    return Response(data, status=resp.status_code)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            raise ValidationError({'refresh': str(e)})
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count}, request=request)
    return Response({'ok': True, 'blacklisted': count})
