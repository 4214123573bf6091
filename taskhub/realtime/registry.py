from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING

from django.utils import timezone

from taskhub.realtime.exceptions import ConnectionNotFound
from taskhub.realtime.exceptions import DuplicateAdmission

if TYPE_CHECKING:  # import for type checking only
    from datetime import datetime

    from taskhub.realtime.identity import UserIdentity
    from taskhub.realtime.presence import PresenceChanged
    from taskhub.realtime.presence import PresenceTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    handle: str
    identity: UserIdentity
    admitted_at: datetime = field(default_factory=timezone.now)


class ConnectionRegistry:
    """Single source of truth for who is connected right now.

    Every admit/evict is forwarded to the presence tracker as a +1/-1 delta;
    the resulting presence edge (if any) is returned to the caller.
    """

    def __init__(self, presence: PresenceTracker) -> None:
        self._presence = presence
        self._connections: dict[str, Connection] = {}

    def __contains__(self, handle: object) -> bool:
        return handle in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def admit(self, handle: str, identity: UserIdentity) -> PresenceChanged | None:
        if handle in self._connections:
            msg = f"Connection {handle} is already admitted"
            raise DuplicateAdmission(msg)
        self._connections[handle] = Connection(handle=handle, identity=identity)
        return self._presence.on_connection_delta(identity, +1)

    def evict(self, handle: str) -> PresenceChanged | None:
        # Disconnect handlers may fire more than once for the same handle.
        conn = self._connections.pop(handle, None)
        if conn is None:
            logger.debug("Evict for unknown connection %s ignored", handle)
            return None
        return self._presence.on_connection_delta(conn.identity, -1)

    def get(self, handle: str) -> Connection:
        try:
            return self._connections[handle]
        except KeyError as exc:
            msg = f"Connection {handle} is not admitted"
            raise ConnectionNotFound(msg) from exc

    def identity_of(self, handle: str) -> UserIdentity:
        return self.get(handle).identity

    def connections(self) -> frozenset[str]:
        return frozenset(self._connections)
