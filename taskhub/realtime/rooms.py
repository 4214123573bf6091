"""Per-task rooms.

A room is the set of connections interested in one task id. Rooms exist only
while someone is in them. Deleted tasks leave a tombstone so late ``join`` or
stray updates for the id are refused instead of resurrecting the room.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections import defaultdict

from taskhub.realtime.exceptions import NotFound
from taskhub.realtime.exceptions import RoomClosed
from taskhub.realtime.exceptions import StaleRoomDelivery
from taskhub.realtime.messages import normalize_task_id

logger = logging.getLogger(__name__)

DEFAULT_TOMBSTONE_LIMIT = 10_000


class RoomMultiplexer:
    def __init__(self, tombstone_limit: int = DEFAULT_TOMBSTONE_LIMIT) -> None:
        self._rooms: dict[str, set[str]] = {}
        # Reverse index: connection -> task ids it joined.
        self._joined: defaultdict[str, set[str]] = defaultdict(set)
        self._closed: OrderedDict[str, None] = OrderedDict()
        self._tombstone_limit = max(int(tombstone_limit), 0)

    def join(self, connection: str, task_id) -> bool:
        """Add ``connection`` to the room; return False if it was already in."""
        task_id = normalize_task_id(task_id)
        if task_id in self._closed:
            msg = f"Task {task_id} has been deleted"
            raise RoomClosed(msg)
        members = self._rooms.setdefault(task_id, set())
        if connection in members:
            return False
        members.add(connection)
        self._joined[connection].add(task_id)
        return True

    def leave(self, connection: str, task_id) -> None:
        task_id = normalize_task_id(task_id)
        members = self._rooms.get(task_id)
        if not members or connection not in members:
            msg = f"Connection {connection} is not in room {task_id}"
            raise NotFound(msg)
        self._discard(connection, task_id)

    def subscribers(self, task_id) -> frozenset[str]:
        return frozenset(self._rooms.get(normalize_task_id(task_id), ()))

    def rooms_of(self, connection: str) -> frozenset[str]:
        return frozenset(self._joined.get(connection, ()))

    def drop_connection(self, connection: str) -> frozenset[str]:
        task_ids = frozenset(self._joined.pop(connection, ()))
        for task_id in task_ids:
            members = self._rooms.get(task_id)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._rooms[task_id]
        return task_ids

    def close(self, task_id) -> frozenset[str]:
        """Tear the room down for a deleted task and return its last members."""
        task_id = normalize_task_id(task_id)
        members = frozenset(self._rooms.pop(task_id, ()))
        for connection in members:
            joined = self._joined.get(connection)
            if joined is None:
                continue
            joined.discard(task_id)
            if not joined:
                del self._joined[connection]
        self._tombstone(task_id)
        return members

    def is_closed(self, task_id) -> bool:
        return normalize_task_id(task_id) in self._closed

    def require_open(self, task_id) -> str:
        task_id = normalize_task_id(task_id)
        if task_id in self._closed:
            msg = f"Room for deleted task {task_id}"
            raise StaleRoomDelivery(msg)
        return task_id

    def __len__(self) -> int:
        return len(self._rooms)

    def _discard(self, connection: str, task_id: str) -> None:
        members = self._rooms[task_id]
        members.discard(connection)
        if not members:
            del self._rooms[task_id]
        joined = self._joined.get(connection)
        if joined is not None:
            joined.discard(task_id)
            if not joined:
                del self._joined[connection]

    def _tombstone(self, task_id: str) -> None:
        if not self._tombstone_limit:
            return
        self._closed[task_id] = None
        self._closed.move_to_end(task_id)
        while len(self._closed) > self._tombstone_limit:
            evicted, _ = self._closed.popitem(last=False)
            logger.debug("Tombstone for task %s expired", evicted)
