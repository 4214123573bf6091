import django_filters

from taskhub.tasks.models import Task


class TaskFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Task.Status.choices)
    priority = django_filters.ChoiceFilter(choices=Task.Priority.choices)
    project = django_filters.CharFilter(field_name="project", lookup_expr="iexact")
    due_before = django_filters.IsoDateTimeFilter(
        field_name="due_date", lookup_expr="lte"
    )
    due_after = django_filters.IsoDateTimeFilter(
        field_name="due_date", lookup_expr="gte"
    )

    class Meta:
        model = Task
        fields = ["status", "priority", "project", "due_before", "due_after"]
