"""Task REST endpoints.

Every queryset is scoped to ``request.user``: tasks owned by someone else are
reported as 404. Successful mutations are written to the audit log and, once
the transaction commits, published to realtime subscribers.
"""

from __future__ import annotations

import contextlib
import logging
from functools import partial

from django.db import transaction
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.generics import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from taskhub.audit.utils import client_ip
from taskhub.audit.utils import log_action
from taskhub.realtime.events.tasks import origin_from_request
from taskhub.realtime.events.tasks import publish_task_created
from taskhub.realtime.events.tasks import publish_task_deleted
from taskhub.realtime.events.tasks import publish_task_updated
from taskhub.tasks import services
from taskhub.tasks.api.filters import TaskFilter
from taskhub.tasks.api.serializers import SubtaskSerializer
from taskhub.tasks.api.serializers import TaskImportBatchSerializer
from taskhub.tasks.api.serializers import TaskSerializer
from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task

logger = logging.getLogger(__name__)

SUBTASK_WRITE_FIELDS = ("title", "completed", "due_date", "assignee")


@extend_schema(tags=["Tasks"])
class TaskViewSet(viewsets.ModelViewSet):
    serializer_class = TaskSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = TaskFilter
    ordering_fields = ["created_at", "updated_at", "due_date", "priority", "title"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return (
            Task.objects.filter(owner=self.request.user)
            .select_related("owner")
            .prefetch_related("subtasks", "dependencies", "blocked_by")
        )

    # Helpers ---------------------------------------------------------------
    def _audit(self, action_name: str, task_id, message: str, **extra) -> None:
        with contextlib.suppress(Exception):
            log_action(
                action_name,
                actor=self.request.user,
                message=message,
                model_name="Task",
                record_id=task_id,
                ip_address=client_ip(self.request),
                **extra,
            )

    def _serialize(self, task: Task) -> dict:
        # Re-read so prefetched subtasks and references reflect the commit.
        fresh = self.get_queryset().get(pk=task.pk)
        return TaskSerializer(fresh, context=self.get_serializer_context()).data

    def _on_commit(self, publisher, *args) -> None:
        transaction.on_commit(
            partial(
                publisher,
                *args,
                self.request.user,
                origin_from_request(self.request),
            )
        )

    def _publish_subtasks_changed(self, task: Task) -> dict:
        data = self._serialize(task)
        patch = {"subtasks": data["subtasks"], "updated_at": data["updated_at"]}
        self._on_commit(publish_task_updated, task.pk, patch)
        return data

    def _get_subtask(self, task: Task, subtask_id: str) -> Subtask:
        return get_object_or_404(Subtask, task=task, pk=subtask_id)

    # CRUD ------------------------------------------------------------------
    def perform_create(self, serializer):
        task = serializer.save(owner=self.request.user)
        logger.info("Task %s created by user %s", task.pk, self.request.user.pk)
        self._audit("task_created", task.pk, f"Task created: {task.title}")
        self._on_commit(publish_task_created, task)

    def update(self, request, *args, **kwargs):
        # PUT carries only the fields the client changed, same as PATCH.
        kwargs["partial"] = True
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        changed = list(serializer.validated_data)
        previous = TaskSerializer(serializer.instance).data
        task = serializer.save()
        data = self._serialize(task)
        patch = {name: data[name] for name in changed}
        patch["updated_at"] = data["updated_at"]
        self._audit(
            "task_updated",
            task.pk,
            f"Task updated: {', '.join(changed) or 'no fields'}",
            before={name: previous[name] for name in changed},
            after={name: data[name] for name in changed},
        )
        self._on_commit(publish_task_updated, task.pk, patch)

    def perform_destroy(self, instance):
        task_id = instance.pk
        title = instance.title
        instance.delete()
        logger.info("Task %s deleted by user %s", task_id, self.request.user.pk)
        self._audit("task_deleted", task_id, f"Task deleted: {title}")
        self._on_commit(publish_task_deleted, task_id)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        task_id = str(instance.pk)
        self.perform_destroy(instance)
        return Response(
            {"detail": "Task removed successfully.", "id": task_id},
            status=status.HTTP_200_OK,
        )

    # Subtasks --------------------------------------------------------------
    @extend_schema(request=SubtaskSerializer, responses=TaskSerializer)
    @action(detail=True, methods=["post"], url_path="subtasks")
    def add_subtask(self, request, pk=None):
        task = self.get_object()
        serializer = SubtaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subtask = services.append_subtask(task, **serializer.validated_data)
        self._audit(
            "subtask_created",
            task.pk,
            f"Subtask added: {subtask.title}",
            after={"subtask": str(subtask.pk)},
        )
        data = self._publish_subtasks_changed(task)
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(request=SubtaskSerializer, responses=TaskSerializer)
    @action(
        detail=True,
        methods=["put", "patch", "delete"],
        url_path=r"subtasks/(?P<subtask_id>[^/.]+)",
    )
    def subtask_detail(self, request, pk=None, subtask_id=None):
        task = self.get_object()
        subtask = self._get_subtask(task, subtask_id)

        if request.method == "DELETE":
            title = subtask.title
            services.remove_subtask(subtask)
            self._audit("subtask_deleted", task.pk, f"Subtask deleted: {title}")
            data = self._publish_subtasks_changed(task)
            return Response({"detail": "Subtask deleted successfully.", "task": data})

        serializer = SubtaskSerializer(subtask, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        fields = {
            name: value
            for name, value in serializer.validated_data.items()
            if name in SUBTASK_WRITE_FIELDS
        }
        services.update_subtask(subtask, **fields)
        self._audit(
            "subtask_updated",
            task.pk,
            f"Subtask updated: {', '.join(fields) or 'no fields'}",
            after={"subtask": str(subtask.pk)},
        )
        return Response(self._publish_subtasks_changed(task))

    # Batch / reporting -----------------------------------------------------
    @extend_schema(request=TaskImportBatchSerializer)
    @action(detail=False, methods=["post"], url_path="import")
    def import_tasks(self, request):
        serializer = TaskImportBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        created, skipped = services.import_tasks(
            request.user,
            serializer.validated_data["tasks"],
        )
        self._audit(
            "tasks_imported",
            None,
            f"Imported {len(created)} tasks ({skipped} skipped)",
        )
        for task in created:
            self._on_commit(publish_task_created, task)
        imported = TaskSerializer(
            self.get_queryset().filter(pk__in=[t.pk for t in created]),
            many=True,
            context=self.get_serializer_context(),
        ).data
        return Response(
            {"imported": imported, "skipped": skipped},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=False, methods=["get"])
    def export(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        data = TaskSerializer(
            queryset,
            many=True,
            context=self.get_serializer_context(),
        ).data
        return Response({"tasks": data})

    @action(detail=False, methods=["get"])
    def stats(self, request):
        queryset = self.filter_queryset(self.get_queryset())
        return Response(services.task_stats(queryset))
