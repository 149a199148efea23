# realtime/auth.py
# Websocket authentication from a simplejwt access token

import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError

logger = logging.getLogger("taskboard.realtime")


@database_sync_to_async
def get_user_for_token(raw_token):
    """
    Resolve an access token to an active user.

    Bad, expired or orphaned tokens give AnonymousUser; the consumer
    refuses those connections.
    """
    auth = JWTAuthentication()
    try:
        validated = auth.get_validated_token(raw_token)
        return auth.get_user(validated)
    except (InvalidToken, TokenError, AuthenticationFailed) as exc:
        logger.debug(f"Rejected websocket token: {exc}")
        return AnonymousUser()


class JWTQueryAuthMiddleware(BaseMiddleware):
    """
    Browsers cannot set headers on a websocket handshake, so the access
    token travels as `?token=<jwt>`. Without one the user already in
    scope (session auth) is left alone.
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get("query_string", b"").decode())
        token = params.get("token", [None])[0]

        if token:
            scope = dict(scope, user=await get_user_for_token(token))

        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(JWTQueryAuthMiddleware(inner))
