"""
WebSocket authentication for browser clients.

Browsers cannot set an ``Authorization`` header on a socket, so the SPA
passes its credential as ``?token=<key>``.  Either a DRF token key or a
simplejwt access token is accepted; without one the session user set by
``AuthMiddlewareStack`` is kept.
"""
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

logger = logging.getLogger(__name__)


@database_sync_to_async
def user_for_token(raw: str):
    token = Token.objects.select_related('user').filter(key=raw).first()
    if token is not None:
        return token.user if token.user.is_active else None
    auth = JWTAuthentication()
    try:
        return auth.get_user(auth.get_validated_token(raw))
    except (AuthenticationFailed, TokenError) as e:
        logger.info('websocket token rejected: %s', e)
        return None


class TokenAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode())
        raw = (params.get('token') or [''])[0].strip()
        if raw:
            user = await user_for_token(raw)
            if user is not None:
                scope = dict(scope, user=user)
        return await super().__call__(scope, receive, send)
