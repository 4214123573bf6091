from __future__ import annotations

from typing import Any

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task
from taskhub.tasks.services import creates_dependency_cycle

TASK_WRITE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "due_date",
    "project",
    "categories",
    "tags",
    "dependencies",
    "blocked_by",
)


def _label_list_field() -> serializers.ListField:
    return serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
    )


def _task_reference_field() -> serializers.PrimaryKeyRelatedField:
    return serializers.PrimaryKeyRelatedField(
        many=True,
        required=False,
        queryset=Task.objects.all(),
        pk_field=serializers.UUIDField(format="hex_verbose"),
    )


class SubtaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subtask
        fields = (
            "id",
            "title",
            "completed",
            "due_date",
            "assignee",
            "position",
            "created_at",
        )
        read_only_fields = ("id", "position", "created_at")


class TaskSerializer(serializers.ModelSerializer):
    owner = serializers.PrimaryKeyRelatedField(read_only=True)
    subtasks = SubtaskSerializer(many=True, read_only=True)
    categories = _label_list_field()
    tags = _label_list_field()
    dependencies = _task_reference_field()
    blocked_by = _task_reference_field()
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Task
        fields = (
            "id",
            "owner",
            *TASK_WRITE_FIELDS,
            "subtasks",
            "is_overdue",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "owner", "created_at", "updated_at")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        request = self.context.get("request")
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            # References may only point at the caller's own tasks.
            owned = Task.objects.filter(owner=user)
            for name in ("dependencies", "blocked_by"):
                self.fields[name].child_relation.queryset = owned

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            msg = _("Title is required.")
            raise serializers.ValidationError(msg)
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        task = self.instance
        if task is None:
            return attrs
        for name in ("dependencies", "blocked_by"):
            refs = attrs.get(name) or []
            if any(ref.pk == task.pk for ref in refs):
                raise serializers.ValidationError(
                    {name: _("A task cannot reference itself.")}
                )
        if "dependencies" in attrs and creates_dependency_cycle(
            task, attrs["dependencies"]
        ):
            raise serializers.ValidationError(
                {"dependencies": _("Dependencies would create a cycle.")}
            )
        return attrs


class SubtaskImportSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    completed = serializers.BooleanField(required=False, default=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)


class TaskImportSerializer(serializers.Serializer):
    """One entry of an import batch (ids and references are not imported)."""

    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(
        choices=Task.Status.choices,
        required=False,
        default=Task.Status.PENDING,
    )
    priority = serializers.ChoiceField(
        choices=Task.Priority.choices,
        required=False,
        default=Task.Priority.MEDIUM,
    )
    due_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    project = serializers.CharField(required=False, allow_blank=True, default="")
    categories = _label_list_field()
    tags = _label_list_field()
    subtasks = SubtaskImportSerializer(many=True, required=False)

    def to_internal_value(self, data):
        # Accept the camelCase keys of exported frontend files.
        if isinstance(data, dict) and "dueDate" in data and "due_date" not in data:
            data = {**data, "due_date": data["dueDate"]}
        return super().to_internal_value(data)


class TaskImportBatchSerializer(serializers.Serializer):
    tasks = TaskImportSerializer(many=True, allow_empty=False)
