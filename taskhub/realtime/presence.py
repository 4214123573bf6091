"""Presence derived from live connection counts.

A user is online while at least one of their connections is admitted. Only
the 0 -> 1 and 1 -> 0 edges produce a ``PresenceChanged``; extra tabs for an
already-online user are silent.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from taskhub.realtime.identity import UserIdentity
from taskhub.realtime.messages import PresenceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceChanged:
    identity: UserIdentity
    status: PresenceStatus


class PresenceTracker:
    def __init__(self) -> None:
        self._counts: Counter[int] = Counter()
        # Latest identity seen per user id, so display names follow reconnects.
        self._identities: dict[int, UserIdentity] = {}

    def on_connection_delta(
        self,
        identity: UserIdentity,
        delta: int,
    ) -> PresenceChanged | None:
        if delta not in (1, -1):
            msg = f"delta must be +1 or -1, got {delta!r}"
            raise ValueError(msg)

        user_id = identity.user_id
        before = self._counts[user_id]
        if delta < 0 and before == 0:
            logger.warning(
                "Presence decrement for user %s with no live connections; ignored",
                user_id,
            )
            return None

        after = before + delta
        if after:
            self._counts[user_id] = after
            self._identities[user_id] = identity
        else:
            del self._counts[user_id]
            self._identities.pop(user_id, None)

        if before == 0 and after > 0:
            return PresenceChanged(identity, PresenceStatus.ONLINE)
        if before > 0 and after == 0:
            return PresenceChanged(identity, PresenceStatus.OFFLINE)
        return None

    def count(self, identity: UserIdentity) -> int:
        return self._counts.get(identity.user_id, 0)

    def is_online(self, identity: UserIdentity) -> bool:
        return self.count(identity) > 0

    def snapshot(self) -> list[UserIdentity]:
        """Online identities, for late joiners to reconcile their view."""
        return [self._identities[uid] for uid in sorted(self._identities)]
