"""Broadcast routing of task mutation events.

``TaskUpdated`` and ``TaskDeleted`` go to the task's room, ``TaskCreated`` goes
to every admitted connection. The originating connection never receives its
own event. Delivery is at-most-once with no acknowledgement: a failed send is
logged and forgotten.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any
from typing import Protocol
from typing import Union

from django.utils import timezone

from taskhub.realtime.exceptions import StaleRoomDelivery
from taskhub.realtime.exceptions import UnknownMessage
from taskhub.realtime.messages import NewTask
from taskhub.realtime.messages import TaskChanged
from taskhub.realtime.messages import TaskRemoved
from taskhub.realtime.messages import normalize_task_id

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import AsyncIterator
    from collections.abc import Iterable
    from datetime import datetime

    from taskhub.realtime.identity import UserIdentity
    from taskhub.realtime.messages import ServerMessage
    from taskhub.realtime.registry import ConnectionRegistry
    from taskhub.realtime.rooms import RoomMultiplexer

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, connection: str, message: ServerMessage) -> None: ...


@dataclass(frozen=True)
class TaskUpdated:
    task_id: str
    patch: dict[str, Any]
    actor: UserIdentity | None = None
    at: datetime = field(default_factory=timezone.now)


@dataclass(frozen=True)
class TaskCreated:
    task: dict[str, Any]
    actor: UserIdentity | None = None
    at: datetime = field(default_factory=timezone.now)

    @property
    def task_id(self) -> str | None:
        value = self.task.get("id")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class TaskDeleted:
    task_id: str
    actor: UserIdentity | None = None
    at: datetime = field(default_factory=timezone.now)


MutationEvent = Union[TaskUpdated, TaskCreated, TaskDeleted]


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class BroadcastRouter:
    def __init__(
        self,
        registry: ConnectionRegistry,
        rooms: RoomMultiplexer,
        transport: Transport,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._transport = transport
        self._locks: dict[str, _LockEntry] = {}

    async def route(
        self,
        event: MutationEvent,
        originator: str | None = None,
    ) -> frozenset[str]:
        """Deliver ``event`` and return the connections it was sent to."""

        if isinstance(event, TaskCreated):
            audience = self._registry.connections() - {originator}
            message = NewTask(
                task=event.task,
                created_by=event.actor,
                timestamp=event.at,
            )
            return await self._deliver(audience, message)

        if isinstance(event, (TaskUpdated, TaskDeleted)):
            task_id = normalize_task_id(event.task_id)
            # Serialize per task id so one task's stream keeps its order.
            async with self._task_lock(task_id):
                try:
                    self._rooms.require_open(task_id)
                except StaleRoomDelivery:
                    logger.debug(
                        "Dropping %s for deleted task %s",
                        type(event).__name__,
                        task_id,
                    )
                    return frozenset()

                if isinstance(event, TaskUpdated):
                    audience = self._rooms.subscribers(task_id) - {originator}
                    message = TaskChanged(
                        task_id=task_id,
                        patch=event.patch,
                        updated_by=event.actor,
                        timestamp=event.at,
                    )
                else:
                    audience = self._rooms.close(task_id) - {originator}
                    message = TaskRemoved(
                        task_id=task_id,
                        deleted_by=event.actor,
                        timestamp=event.at,
                    )
                return await self._deliver(audience, message)

        msg = f"Cannot route {type(event).__name__}"
        raise UnknownMessage(msg)

    async def send_to(
        self,
        connections: Iterable[str],
        message: ServerMessage,
    ) -> frozenset[str]:
        """Deliver a non-mutation message (presence, snapshots, errors)."""
        return await self._deliver(frozenset(connections), message)

    async def _deliver(
        self,
        audience: frozenset[str],
        message: ServerMessage,
    ) -> frozenset[str]:
        delivered: set[str] = set()
        for connection in sorted(audience):
            try:
                await self._transport.send(connection, message)
            except Exception:  # noqa: BLE001 - broadcast is best-effort
                logger.debug(
                    "Delivery of %s to %s failed",
                    message.event,
                    connection,
                    exc_info=True,
                )
                continue
            delivered.add(connection)
        if audience:
            logger.debug(
                "%s delivered to %d/%d connections",
                message.event,
                len(delivered),
                len(audience),
            )
        return frozenset(delivered)

    @contextlib.asynccontextmanager
    async def _task_lock(self, task_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(task_id)
        if entry is None:
            entry = self._locks[task_id] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(task_id, None)
