"""
Custom authentication backend for token-based auth.

Subclass of Django REST framework's ``TokenAuthentication`` kept in its
own module so that settings can reference it without importing any
view code.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    ``Bearer`` headers are left to the JWT authenticator configured
    after this class.
    """

    keyword = 'Token'
