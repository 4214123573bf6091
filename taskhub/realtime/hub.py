"""Process-wide collaboration state and the connection lifecycle.

``CollaborationHub`` owns the registry, presence tracker, rooms, router and
mutation gateway for one server process. It is transport-agnostic: the
Socket.IO adapter authenticates the handshake and forwards ``connect``,
``disconnect`` and inbound events here.

All bookkeeping runs synchronously on the event loop; the only awaits are
transport sends, which happen after membership has been updated.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from taskhub.realtime.exceptions import InvalidPayload
from taskhub.realtime.exceptions import NotFound
from taskhub.realtime.exceptions import RoomClosed
from taskhub.realtime.exceptions import UnknownMessage
from taskhub.realtime.gateway import MutationGateway
from taskhub.realtime.messages import JoinTask
from taskhub.realtime.messages import LeaveTask
from taskhub.realtime.messages import OnlineUsers
from taskhub.realtime.messages import RealtimeErrorMessage
from taskhub.realtime.messages import TaskCreatedNotice
from taskhub.realtime.messages import TaskDeletedNotice
from taskhub.realtime.messages import TaskUpdatedNotice
from taskhub.realtime.messages import UserStatusChanged
from taskhub.realtime.messages import parse_client_message
from taskhub.realtime.presence import PresenceTracker
from taskhub.realtime.registry import ConnectionRegistry
from taskhub.realtime.rooms import DEFAULT_TOMBSTONE_LIMIT
from taskhub.realtime.rooms import RoomMultiplexer
from taskhub.realtime.router import BroadcastRouter
from taskhub.realtime.router import TaskCreated
from taskhub.realtime.router import TaskDeleted
from taskhub.realtime.router import TaskUpdated

if TYPE_CHECKING:  # import for type checking only
    from taskhub.realtime.identity import UserIdentity
    from taskhub.realtime.messages import ClientMessage
    from taskhub.realtime.presence import PresenceChanged
    from taskhub.realtime.router import Transport

logger = logging.getLogger(__name__)


def _ack(**extra: Any) -> dict[str, Any]:
    return {"ok": True, **extra}


def _nack(code: str, detail: str) -> dict[str, Any]:
    return {"ok": False, "code": code, "detail": detail}


class CollaborationHub:
    def __init__(
        self,
        transport: Transport,
        *,
        relay_client_notices: bool = False,
        tombstone_limit: int = DEFAULT_TOMBSTONE_LIMIT,
    ) -> None:
        self.presence = PresenceTracker()
        self.registry = ConnectionRegistry(self.presence)
        self.rooms = RoomMultiplexer(tombstone_limit=tombstone_limit)
        self.router = BroadcastRouter(self.registry, self.rooms, transport)
        self.gateway = MutationGateway(self.router)
        self.relay_client_notices = relay_client_notices

    # Lifecycle -------------------------------------------------------------
    async def connect(self, connection: str, identity: UserIdentity) -> None:
        """Admit a connection, send it the online snapshot, announce presence.

        ``DuplicateAdmission`` propagates; the first admission stays intact.
        """

        change = self.registry.admit(connection, identity)
        logger.info("Realtime connect %s (user %s)", connection, identity.user_id)

        snapshot = OnlineUsers(users=tuple(self.presence.snapshot()))
        await self.router.send_to([connection], snapshot)
        if change is not None:
            # The new connection already sees itself in the snapshot.
            await self._announce(change, exclude=connection)

    async def disconnect(self, connection: str) -> None:
        left = self.rooms.drop_connection(connection)
        change = self.registry.evict(connection)
        logger.info(
            "Realtime disconnect %s (left %d rooms)",
            connection,
            len(left),
        )
        if change is not None:
            await self._announce(change)

    def online_users(self) -> list[UserIdentity]:
        return self.presence.snapshot()

    # Inbound messages -----------------------------------------------------
    async def handle(self, connection: str, event: str, data: Any) -> dict[str, Any]:
        """Dispatch one inbound event and return the Socket.IO ack payload."""

        try:
            message = parse_client_message(event, data)
        except (UnknownMessage, InvalidPayload) as exc:
            logger.warning(
                "Rejected realtime event %r from %s: %s",
                event,
                connection,
                exc,
            )
            await self.router.send_to(
                [connection],
                RealtimeErrorMessage(code=exc.code, detail=str(exc)),
            )
            return _nack(exc.code, str(exc))

        try:
            identity = self.registry.identity_of(connection)
        except NotFound:
            logger.warning(
                "Event %r from connection %s with no registry entry",
                event,
                connection,
            )
            return _nack(NotFound.code, "connection is not admitted")

        return await self._dispatch(connection, identity, message)

    async def _dispatch(
        self,
        connection: str,
        identity: UserIdentity,
        message: ClientMessage,
    ) -> dict[str, Any]:
        if isinstance(message, JoinTask):
            try:
                self.rooms.join(connection, message.task_id)
            except RoomClosed as exc:
                logger.info("Join refused for %s: %s", connection, exc)
                await self.router.send_to(
                    [connection],
                    RealtimeErrorMessage(code=exc.code, detail=str(exc)),
                )
                return _nack(exc.code, str(exc))
            logger.debug("%s joined task room %s", connection, message.task_id)
            return _ack(taskId=message.task_id)

        if isinstance(message, LeaveTask):
            try:
                self.rooms.leave(connection, message.task_id)
            except NotFound as exc:
                logger.debug("Leave ignored: %s", exc)
            return _ack(taskId=message.task_id)

        notices = (TaskUpdatedNotice, TaskCreatedNotice, TaskDeletedNotice)
        if isinstance(message, notices):
            if not self.relay_client_notices:
                logger.debug(
                    "Client notice %s from %s not relayed",
                    type(message).__name__,
                    connection,
                )
                return _ack(relayed=False)
            if isinstance(message, TaskUpdatedNotice):
                event = TaskUpdated(
                    task_id=message.task_id,
                    patch=message.patch,
                    actor=identity,
                )
            elif isinstance(message, TaskCreatedNotice):
                event = TaskCreated(task=message.task, actor=identity)
            else:
                event = TaskDeleted(task_id=message.task_id, actor=identity)
            delivered = await self.router.route(event, originator=connection)
            return _ack(relayed=True, delivered=len(delivered))

        msg = f"Unhandled client message {type(message).__name__}"
        raise UnknownMessage(msg)

    async def _announce(
        self,
        change: PresenceChanged,
        exclude: str | None = None,
    ) -> None:
        logger.info(
            "User %s is %s",
            change.identity.user_id,
            change.status.value,
        )
        audience = self.registry.connections() - {exclude}
        await self.router.send_to(
            audience,
            UserStatusChanged(identity=change.identity, status=change.status),
        )
