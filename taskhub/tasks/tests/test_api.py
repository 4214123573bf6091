from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from taskhub.audit.models import AuditLog
from taskhub.tasks.models import Task
from taskhub.tasks.tests.factories import make_task

pytestmark = pytest.mark.django_db

LIST_URL = "/api/v1/tasks/"


def detail_url(task):
    return f"/api/v1/tasks/{task.pk}/"


class TestTaskCrud:
    def test_requires_authentication(self):
        resp = APIClient().get(LIST_URL)
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_sets_owner_and_defaults(self, api_client, user):
        resp = api_client.post(
            LIST_URL,
            {"title": "  Plan sprint  ", "tags": ["work"]},
            format="json",
        )

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["title"] == "Plan sprint"
        assert resp.data["owner"] == user.pk
        assert resp.data["status"] == "pending"
        assert resp.data["priority"] == "medium"
        assert resp.data["subtasks"] == []
        task = Task.objects.get(pk=resp.data["id"])
        assert task.owner == user
        assert AuditLog.objects.filter(
            action="task_created",
            record_id=str(task.pk),
        ).exists()

    def test_owner_cannot_be_assigned(self, api_client, user, other_user):
        resp = api_client.post(
            LIST_URL,
            {"title": "Mine", "owner": other_user.pk},
            format="json",
        )
        assert resp.status_code == status.HTTP_201_CREATED
        assert Task.objects.get(pk=resp.data["id"]).owner == user

    def test_blank_title_is_rejected(self, api_client):
        resp = api_client.post(LIST_URL, {"title": "   "}, format="json")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "title" in resp.data

    def test_list_is_scoped_to_owner(self, api_client, user, other_user):
        mine = make_task(user, "Mine")
        make_task(other_user, "Theirs")

        resp = api_client.get(LIST_URL)

        assert resp.status_code == status.HTTP_200_OK
        ids = [row["id"] for row in resp.data["results"]]
        assert ids == [str(mine.pk)]

    def test_foreign_task_is_not_found(self, api_client, other_user):
        theirs = make_task(other_user, "Theirs")

        assert api_client.get(detail_url(theirs)).status_code == 404
        assert api_client.patch(
            detail_url(theirs),
            {"title": "hijack"},
            format="json",
        ).status_code == 404
        assert api_client.delete(detail_url(theirs)).status_code == 404
        assert Task.objects.filter(pk=theirs.pk).exists()

    def test_put_is_partial(self, api_client, user):
        task = make_task(user, "Original", description="keep me")

        resp = api_client.put(detail_url(task), {"status": "completed"}, format="json")

        assert resp.status_code == status.HTTP_200_OK, resp.data
        task.refresh_from_db()
        assert task.status == Task.Status.COMPLETED
        assert task.title == "Original"
        assert task.description == "keep me"

    def test_update_is_audited_with_before_and_after(self, api_client, user):
        task = make_task(user, "Original")

        api_client.patch(detail_url(task), {"priority": "high"}, format="json")

        entry = AuditLog.objects.get(action="task_updated")
        assert entry.before == {"priority": "medium"}
        assert entry.after == {"priority": "high"}

    def test_delete(self, api_client, user):
        task = make_task(user)

        resp = api_client.delete(detail_url(task))

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data == {"detail": "Task removed successfully.", "id": str(task.pk)}
        assert not Task.objects.filter(pk=task.pk).exists()


class TestTaskFilters:
    def test_filter_by_status_and_project(self, api_client, user):
        make_task(user, "A", status="completed", project="Home")
        wanted = make_task(user, "B", status="pending", project="home")
        make_task(user, "C", status="pending", project="Work")

        resp = api_client.get(LIST_URL, {"status": "pending", "project": "HOME"})

        assert [row["id"] for row in resp.data["results"]] == [str(wanted.pk)]

    def test_filter_by_due_window(self, api_client, user):
        now = timezone.now()
        soon = make_task(user, "Soon", due_date=now + timedelta(days=1))
        make_task(user, "Later", due_date=now + timedelta(days=10))

        resp = api_client.get(
            LIST_URL,
            {"due_before": (now + timedelta(days=2)).isoformat()},
        )

        assert [row["id"] for row in resp.data["results"]] == [str(soon.pk)]


class TestTaskDependencies:
    def test_dependencies_round_trip(self, api_client, user):
        first = make_task(user, "First")
        second = make_task(user, "Second")

        resp = api_client.patch(
            detail_url(second),
            {"dependencies": [str(first.pk)]},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert resp.data["dependencies"] == [str(first.pk)]

    def test_self_reference_is_rejected(self, api_client, user):
        task = make_task(user)
        resp = api_client.patch(
            detail_url(task),
            {"blocked_by": [str(task.pk)]},
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "blocked_by" in resp.data

    def test_foreign_reference_is_rejected(self, api_client, user, other_user):
        task = make_task(user)
        theirs = make_task(other_user)
        resp = api_client.patch(
            detail_url(task),
            {"dependencies": [str(theirs.pk)]},
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "dependencies" in resp.data

    def test_cycle_is_rejected(self, api_client, user):
        a = make_task(user, "A")
        b = make_task(user, "B")
        a.dependencies.add(b)

        resp = api_client.patch(
            detail_url(b),
            {"dependencies": [str(a.pk)]},
            format="json",
        )

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "dependencies" in resp.data

    def test_deleting_dependency_removes_reference(self, api_client, user):
        a = make_task(user, "A")
        b = make_task(user, "B")
        b.dependencies.add(a)

        api_client.delete(detail_url(a))

        resp = api_client.get(detail_url(b))
        assert resp.data["dependencies"] == []
