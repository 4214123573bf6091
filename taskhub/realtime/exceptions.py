from __future__ import annotations


class RealtimeError(Exception):
    """Base class for realtime bookkeeping errors."""

    code = "realtime_error"


class NotFound(RealtimeError):
    """A connection, room or task id that does not exist was referenced."""

    code = "not_found"


class ConnectionNotFound(NotFound):
    pass


class RoomClosed(NotFound):
    """The room belongs to a task that has been deleted."""


class DuplicateAdmission(RealtimeError):
    code = "duplicate_admission"


class StaleRoomDelivery(RealtimeError):
    """A broadcast targeted the room of a task that was just deleted."""

    code = "stale_room"


class UnknownMessage(RealtimeError):
    code = "unknown_message"


class InvalidPayload(RealtimeError):
    code = "invalid_payload"
