import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from rest_framework.authtoken.models import Token

logger = logging.getLogger(__name__)


def token_from_scope(scope):
    params = parse_qs(scope.get("query_string", b"").decode())
    return params.get("token", [None])[0]


@database_sync_to_async
def user_for_token(key):
    if not key:
        return AnonymousUser()
    try:
        token = Token.objects.select_related("user").filter(key=key).first()
    except DatabaseError:
        logger.warning("Token lookup failed for websocket connection", exc_info=True)
        return AnonymousUser()
    return token.user if token else AnonymousUser()


class TokenAuthMiddleware(BaseMiddleware):
    """Sets ``scope["user"]`` from a DRF token passed as ``?token=<key>``."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        scope["user"] = await user_for_token(token_from_scope(scope))
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return TokenAuthMiddleware(inner)
