"""
MESSAGING App - WebSocket Authentication

API clients hold a simplejwt access token, not a session cookie. The token
is read from ?token= or an "Authorization: Bearer" header and resolves
scope['user'] before the consumers run.
"""

import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

logger = logging.getLogger(__name__)


def token_from_scope(scope):
    query = parse_qs(scope.get('query_string', b'').decode())
    if query.get('token'):
        return query['token'][0]

    headers = dict(scope.get('headers', []))
    authorization = headers.get(b'authorization', b'').decode()
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1]
    return None


@database_sync_to_async
def user_for_token(raw_token):
    authentication = JWTAuthentication()
    try:
        validated = authentication.get_validated_token(raw_token)
        return authentication.get_user(validated)
    except (AuthenticationFailed, TokenError) as e:
        logger.info(f"[WS] Rejected token: {e}")
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """Replaces the session user when the connection carries a token."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        raw_token = token_from_scope(scope)
        if raw_token:
            scope['user'] = await user_for_token(raw_token)
        return await self.inner(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    """Session auth for the Django admin, token auth for API clients."""
    return AuthMiddlewareStack(JWTAuthMiddleware(inner))
