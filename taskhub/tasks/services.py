"""Task store operations shared by the REST views and the import command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction
from django.db.models import Count
from django.db.models import Max
from django.db.models import Q
from django.utils import timezone

from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task

if TYPE_CHECKING:  # import for type checking only
    from collections.abc import Iterable

    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


def creates_dependency_cycle(task: Task, dependencies: Iterable[Task]) -> bool:
    """Return True if making ``task`` depend on ``dependencies`` closes a loop.

    Walks the existing dependency graph from each proposed dependency; reaching
    ``task`` again means a cycle.
    """

    target = task.pk
    stack = [dep.pk for dep in dependencies]
    seen: set = set()
    while stack:
        current = stack.pop()
        if current == target:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(
            Task.dependencies.through.objects.filter(
                from_task_id=current
            ).values_list("to_task_id", flat=True)
        )
    return False


def append_subtask(task: Task, **fields: Any) -> Subtask:
    """Add a subtask at the end of the task's sequence and touch the parent."""

    with transaction.atomic():
        last = task.subtasks.aggregate(last=Max("position"))["last"]
        position = 0 if last is None else last + 1
        subtask = Subtask.objects.create(task=task, position=position, **fields)
        task.touch()
    return subtask


def update_subtask(subtask: Subtask, **fields: Any) -> Subtask:
    with transaction.atomic():
        for name, value in fields.items():
            setattr(subtask, name, value)
        if fields:
            subtask.save(update_fields=list(fields))
        subtask.task.touch()
    return subtask


def remove_subtask(subtask: Subtask) -> Task:
    task = subtask.task
    with transaction.atomic():
        subtask.delete()
        task.touch()
    return task


def import_tasks(owner, entries: Iterable[dict[str, Any]]) -> tuple[list[Task], int]:
    """Create tasks for ``owner`` from validated import entries.

    An entry is skipped when the owner already has a task with the same title
    and due date. Returns the created tasks and the number skipped.
    """

    created: list[Task] = []
    skipped = 0
    with transaction.atomic():
        for entry in entries:
            data = dict(entry)
            subtasks = data.pop("subtasks", None) or []
            if Task.objects.filter(
                owner=owner,
                title=data["title"],
                due_date=data.get("due_date"),
            ).exists():
                skipped += 1
                continue
            task = Task.objects.create(owner=owner, **data)
            for position, sub in enumerate(subtasks):
                Subtask.objects.create(task=task, position=position, **sub)
            created.append(task)
    logger.info(
        "Imported %d tasks for user %s (%d skipped)",
        len(created),
        owner.pk,
        skipped,
    )
    return created, skipped


def task_stats(queryset: QuerySet[Task]) -> dict[str, Any]:
    now = timezone.now()
    totals = queryset.aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=Task.Status.COMPLETED)),
        overdue=Count(
            "id",
            filter=Q(due_date__lt=now) & ~Q(status=Task.Status.COMPLETED),
        ),
    )
    by_status = {value: 0 for value in Task.Status.values}
    for row in queryset.order_by().values("status").annotate(n=Count("id")):
        by_status[row["status"]] = row["n"]
    by_priority = {value: 0 for value in Task.Priority.values}
    for row in queryset.order_by().values("priority").annotate(n=Count("id")):
        by_priority[row["priority"]] = row["n"]
    subtasks = Subtask.objects.filter(task__in=queryset).aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(completed=True)),
    )

    total = totals["total"]
    return {
        "total": total,
        "by_status": by_status,
        "by_priority": by_priority,
        "overdue": totals["overdue"],
        "completion_rate": round(totals["completed"] / total, 2) if total else 0.0,
        "subtasks": subtasks,
    }
