from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from taskhub.realtime.router import TaskCreated
from taskhub.realtime.router import TaskDeleted
from taskhub.realtime.router import TaskUpdated

if TYPE_CHECKING:  # import for type checking only
    from taskhub.realtime.identity import UserIdentity
    from taskhub.realtime.router import BroadcastRouter
    from taskhub.realtime.router import MutationEvent

logger = logging.getLogger(__name__)


class MutationGateway:
    """Turns committed store mutations into broadcast events.

    Callers invoke it only after the store confirmed the write. Broadcasting
    is not transactional with the commit: routing failures are logged and
    never retried or reported back to the REST caller.
    """

    def __init__(self, router: BroadcastRouter) -> None:
        self._router = router

    async def after_create(
        self,
        task: dict[str, Any],
        actor: UserIdentity | None,
        origin: str | None = None,
    ) -> frozenset[str]:
        return await self._publish(TaskCreated(task=task, actor=actor), origin)

    async def after_update(
        self,
        task_id,
        patch: dict[str, Any],
        actor: UserIdentity | None,
        origin: str | None = None,
    ) -> frozenset[str]:
        event = TaskUpdated(task_id=str(task_id), patch=patch, actor=actor)
        return await self._publish(event, origin)

    async def after_delete(
        self,
        task_id,
        actor: UserIdentity | None,
        origin: str | None = None,
    ) -> frozenset[str]:
        event = TaskDeleted(task_id=str(task_id), actor=actor)
        return await self._publish(event, origin)

    async def _publish(
        self,
        event: MutationEvent,
        origin: str | None,
    ) -> frozenset[str]:
        try:
            return await self._router.route(event, originator=origin)
        except Exception:
            logger.exception("Broadcast of %s failed", type(event).__name__)
            return frozenset()
