"""
Legacy token authentication for CareBridge clients.

Login returns both a JWT pair and a long-lived DRF token. Older mobile
builds still send ``Authorization: Token <key>``; this class keeps that
path working alongside ``JWTAuthentication``.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        # accounts without a role cannot resolve to an actor
        if not getattr(user, 'role', None):
            raise exceptions.AuthenticationFailed('Account has no role assigned')
        return user, token
