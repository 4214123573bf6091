from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from asgiref.sync import async_to_sync
from django.conf import settings

from taskhub.realtime import socketio as realtime
from taskhub.realtime.exceptions import ConnectionNotFound
from taskhub.realtime.identity import UserIdentity
from taskhub.realtime.identity import identity_for_user

if TYPE_CHECKING:  # import for type checking only
    from taskhub.tasks.models import Task

logger = logging.getLogger(__name__)

SOCKET_ID_HEADER = "X-Socket-ID"


def _broadcast_enabled() -> bool:
    return bool(getattr(settings, "REALTIME_BROADCAST_ON_COMMIT", True))


def _identity(actor) -> UserIdentity | None:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return None
    return identity_for_user(actor)


def origin_from_request(request) -> str | None:
    """Socket.IO session id of the caller, sent so it is not echoed back."""
    value = request.headers.get(SOCKET_ID_HEADER, "").strip()
    return value or None


def _verified_origin(origin: str | None, actor: UserIdentity | None) -> str | None:
    """Keep ``origin`` only when it is one of the actor's own connections."""
    if origin is None or actor is None:
        return None
    try:
        owner = realtime.hub.registry.identity_of(origin)
    except ConnectionNotFound:
        return None
    if owner.user_id != actor.user_id:
        logger.warning(
            "Ignoring socket id %s claimed by user %s",
            origin,
            actor.user_id,
        )
        return None
    return origin


def build_task_payload(task: Task) -> dict[str, Any]:
    from taskhub.tasks.api.serializers import TaskSerializer  # noqa: PLC0415

    return dict(TaskSerializer(task).data)


def publish_task_created(task: Task, actor, origin: str | None = None) -> None:
    """Announce a committed task creation to every connected client."""

    if not _broadcast_enabled():
        return
    payload = build_task_payload(task)
    who = _identity(actor)
    async_to_sync(realtime.hub.gateway.after_create)(
        payload,
        who,
        _verified_origin(origin, who),
    )


def publish_task_updated(
    task_id,
    patch: dict[str, Any],
    actor,
    origin: str | None = None,
) -> None:
    """Announce a committed field update to the task's room."""

    if not _broadcast_enabled():
        return
    who = _identity(actor)
    async_to_sync(realtime.hub.gateway.after_update)(
        str(task_id),
        patch,
        who,
        _verified_origin(origin, who),
    )


def publish_task_deleted(task_id, actor, origin: str | None = None) -> None:
    """Announce a committed deletion and tear down the task's room."""

    if not _broadcast_enabled():
        return
    who = _identity(actor)
    async_to_sync(realtime.hub.gateway.after_delete)(
        str(task_id),
        who,
        _verified_origin(origin, who),
    )
