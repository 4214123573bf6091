"""Global Socket.IO server for the task board frontend.

Frontend convention:
- URL base: ws://<host>:8000
- Socket.IO path: settings.REALTIME_SOCKETIO_PATH (default ``ws/realtime``)
- Auth: `query.token` or `auth.token` (JWT access token)

The handlers here only authenticate and forward. Registry, presence, rooms
and broadcasting live in the process-wide ``hub``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any
from urllib.parse import parse_qs

import socketio
from channels.db import database_sync_to_async
from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from taskhub.realtime.exceptions import DuplicateAdmission
from taskhub.realtime.hub import CollaborationHub
from taskhub.realtime.identity import UserIdentity
from taskhub.realtime.identity import identity_for_user
from taskhub.realtime.rooms import DEFAULT_TOMBSTONE_LIMIT

if TYPE_CHECKING:  # import for type checking only
    from taskhub.realtime.messages import ServerMessage

logger = logging.getLogger(__name__)


def _cors_allowed_origins(value: Any) -> str | list[str]:
    """Map the settings value onto what engine.io accepts.

    Only the bare string ``"*"`` is treated as a wildcard by engine.io.
    """
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",")]
    origins = [origin for origin in value if origin]
    if not origins or "*" in origins:
        return "*"
    return origins


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=_cors_allowed_origins(
        getattr(settings, "REALTIME_CORS_ALLOWED_ORIGINS", "*"),
    ),
    logger=False,
    engineio_logger=False,
)


class SocketIOTransport:
    def __init__(self, server: socketio.AsyncServer) -> None:
        self._server = server

    async def send(self, connection: str, message: ServerMessage) -> None:
        await self._server.emit(message.event, message.to_payload(), to=connection)


hub = CollaborationHub(
    SocketIOTransport(sio),
    relay_client_notices=getattr(settings, "REALTIME_RELAY_CLIENT_NOTICES", False),
    tombstone_limit=getattr(
        settings,
        "REALTIME_TOMBSTONE_LIMIT",
        DEFAULT_TOMBSTONE_LIMIT,
    ),
)


@database_sync_to_async
def _get_identity_from_access_token(token: str) -> UserIdentity:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)
    return identity_for_user(user)


def _refusal_reason(exc: Exception) -> str:
    detail = getattr(exc, "detail", None) or exc.args
    if "expired" in str(detail).lower():
        return "jwt_expired"
    return "unauthorized"


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    """Extract JWT token from Socket.IO environ/auth.

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    # socket.io-client sends `auth: { token }`.
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token.removeprefix("Bearer ").strip() or None

    return None


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    token = _extract_token(environ, auth)
    if not token:
        msg = "unauthorized"
        raise ConnectionRefusedError(msg)

    try:
        identity = await _get_identity_from_access_token(token)
    except (TokenError, AuthenticationFailed) as exc:
        # InvalidToken carries the "Token is expired" message in its detail.
        raise ConnectionRefusedError(_refusal_reason(exc)) from exc
    except Exception as exc:
        logger.exception("Socket.IO connect error")
        msg = "server_error"
        raise ConnectionRefusedError(msg) from exc

    try:
        await hub.connect(sid, identity)
    except DuplicateAdmission as exc:
        logger.warning("Socket.IO duplicate admission for %s", sid)
        msg = "duplicate_connection"
        raise ConnectionRefusedError(msg) from exc


@sio.event
async def disconnect(sid: str, *args: Any):
    # python-socketio >= 5.12 passes a disconnect reason.
    await hub.disconnect(sid)


@sio.on("*")
async def any_event(event: str, sid: str, *args: Any):
    data = args[0] if args else None
    return await hub.handle(sid, event, data)
