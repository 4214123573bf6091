from django.contrib import admin

from taskhub.tasks.models import Subtask
from taskhub.tasks.models import Task


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0
    fields = ["title", "completed", "due_date", "assignee", "position"]


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ["title", "owner", "status", "priority", "due_date", "updated_at"]
    list_filter = ["status", "priority"]
    search_fields = ["title", "description", "project"]
    readonly_fields = ["id", "owner", "created_at", "updated_at"]
    filter_horizontal = ["dependencies", "blocked_by"]
    inlines = [SubtaskInline]
