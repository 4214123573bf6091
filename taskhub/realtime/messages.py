"""Wire messages exchanged over the realtime channel.

Client -> server and server -> client messages are closed sets of frozen
dataclasses. Inbound Socket.IO events are parsed into a ``ClientMessage`` by
``parse_client_message``; outbound messages know their own event name and
JSON payload.

Event names follow the frontend's socket.io-client conventions (kebab-case).
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from typing import Any
from typing import Union

from taskhub.realtime.exceptions import InvalidPayload
from taskhub.realtime.exceptions import UnknownMessage
from taskhub.realtime.identity import UserIdentity

JOIN_TASK = "join-task"
LEAVE_TASK = "leave-task"
TASK_UPDATED = "task-updated"
TASK_CREATED = "task-created"
TASK_DELETED = "task-deleted"

CLIENT_EVENTS = (JOIN_TASK, LEAVE_TASK, TASK_UPDATED, TASK_CREATED, TASK_DELETED)


def normalize_task_id(value: Any) -> str:
    """Return a task id as a non-empty string.

    Accepts the bare id (str/int/UUID) or a ``{"taskId": ...}`` mapping, which
    is what the frontend sends depending on the event.
    """

    if isinstance(value, dict):
        value = value.get("taskId", value.get("task_id"))
    if isinstance(value, bool) or value is None:
        msg = "taskId is required"
        raise InvalidPayload(msg)
    task_id = str(value).strip()
    if not task_id:
        msg = "taskId is required"
        raise InvalidPayload(msg)
    return task_id


# Client -> server ---------------------------------------------------------


@dataclass(frozen=True)
class JoinTask:
    task_id: str


@dataclass(frozen=True)
class LeaveTask:
    task_id: str


@dataclass(frozen=True)
class TaskUpdatedNotice:
    task_id: str
    patch: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskCreatedNotice:
    task: dict[str, Any]


@dataclass(frozen=True)
class TaskDeletedNotice:
    task_id: str


ClientMessage = Union[
    JoinTask,
    LeaveTask,
    TaskUpdatedNotice,
    TaskCreatedNotice,
    TaskDeletedNotice,
]


def _require_mapping(event: str, data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        msg = f"{event} expects an object payload"
        raise InvalidPayload(msg)
    return data


def parse_client_message(event: str, data: Any) -> ClientMessage:
    """Parse an inbound Socket.IO event into a client message.

    Raises ``UnknownMessage`` for event names outside the protocol and
    ``InvalidPayload`` when the body does not have the expected shape.
    """

    if event == JOIN_TASK:
        return JoinTask(task_id=normalize_task_id(data))
    if event == LEAVE_TASK:
        return LeaveTask(task_id=normalize_task_id(data))
    if event == TASK_UPDATED:
        body = _require_mapping(event, data)
        patch = body.get("patch", body.get("updatedData", {}))
        if patch is None:
            patch = {}
        if not isinstance(patch, dict):
            msg = "patch must be an object"
            raise InvalidPayload(msg)
        return TaskUpdatedNotice(task_id=normalize_task_id(body), patch=patch)
    if event == TASK_CREATED:
        body = _require_mapping(event, data)
        task = body.get("task")
        if not isinstance(task, dict):
            msg = "task must be an object"
            raise InvalidPayload(msg)
        return TaskCreatedNotice(task=task)
    if event == TASK_DELETED:
        return TaskDeletedNotice(task_id=normalize_task_id(data))
    msg = f"Unknown realtime event: {event!r}"
    raise UnknownMessage(msg)


# Server -> client ---------------------------------------------------------


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


def _identity_payload(identity: UserIdentity | None) -> dict[str, Any] | None:
    if identity is None:
        return None
    return {"userId": identity.user_id, "name": identity.name}


def _isoformat(value: datetime) -> str:
    return value.isoformat()


@dataclass(frozen=True)
class TaskChanged:
    event = "task-changed"

    task_id: str
    patch: dict[str, Any]
    updated_by: UserIdentity | None
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "patch": self.patch,
            "updatedBy": _identity_payload(self.updated_by),
            "timestamp": _isoformat(self.timestamp),
        }


@dataclass(frozen=True)
class NewTask:
    event = "new-task"

    task: dict[str, Any]
    created_by: UserIdentity | None
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "createdBy": _identity_payload(self.created_by),
            "timestamp": _isoformat(self.timestamp),
        }


@dataclass(frozen=True)
class TaskRemoved:
    event = "task-removed"

    task_id: str
    deleted_by: UserIdentity | None
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "deletedBy": _identity_payload(self.deleted_by),
            "timestamp": _isoformat(self.timestamp),
        }


@dataclass(frozen=True)
class UserStatusChanged:
    event = "user-status-changed"

    identity: UserIdentity
    status: PresenceStatus

    def to_payload(self) -> dict[str, Any]:
        return {
            "userId": self.identity.user_id,
            "name": self.identity.name,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class OnlineUsers:
    event = "online-users"

    users: tuple[UserIdentity, ...]

    def to_payload(self) -> dict[str, Any]:
        return {"users": [_identity_payload(u) for u in self.users]}


@dataclass(frozen=True)
class RealtimeErrorMessage:
    event = "realtime-error"

    code: str
    detail: str

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "detail": self.detail}


ServerMessage = Union[
    TaskChanged,
    NewTask,
    TaskRemoved,
    UserStatusChanged,
    OnlineUsers,
    RealtimeErrorMessage,
]
