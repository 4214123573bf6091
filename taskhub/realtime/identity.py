from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UserIdentity:
    """Stable identity bound to a realtime connection at handshake time."""

    user_id: int
    name: str = ""

    @classmethod
    def from_user(cls, user) -> UserIdentity:
        name = getattr(user, "name", "") or getattr(user, "username", "") or ""
        return cls(user_id=int(user.pk), name=str(name))


def identity_for_user(user) -> UserIdentity:
    return UserIdentity.from_user(user)
