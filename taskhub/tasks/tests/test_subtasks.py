import pytest
from rest_framework import status

from taskhub.audit.models import AuditLog
from taskhub.tasks.tests.factories import make_subtask
from taskhub.tasks.tests.factories import make_task

pytestmark = pytest.mark.django_db


def subtasks_url(task):
    return f"/api/v1/tasks/{task.pk}/subtasks/"


def subtask_url(task, subtask):
    return f"/api/v1/tasks/{task.pk}/subtasks/{subtask.pk}/"


class TestSubtaskActions:
    def test_add_appends_and_returns_task(self, api_client, user):
        task = make_task(user)
        make_subtask(task, "First", position=0)
        before = task.updated_at

        resp = api_client.post(subtasks_url(task), {"title": "Second"}, format="json")

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["id"] == str(task.pk)
        assert [s["title"] for s in resp.data["subtasks"]] == ["First", "Second"]
        assert [s["position"] for s in resp.data["subtasks"]] == [0, 1]
        task.refresh_from_db()
        assert task.updated_at >= before
        assert AuditLog.objects.filter(action="subtask_created").exists()

    def test_update_toggles_completion(self, api_client, user):
        task = make_task(user)
        sub = make_subtask(task)

        resp = api_client.patch(
            subtask_url(task, sub),
            {"completed": True},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert resp.data["subtasks"][0]["completed"] is True
        sub.refresh_from_db()
        assert sub.completed is True

    def test_assignee_can_be_set(self, api_client, user, other_user):
        task = make_task(user)
        sub = make_subtask(task)

        resp = api_client.patch(
            subtask_url(task, sub),
            {"assignee": other_user.pk},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK, resp.data
        sub.refresh_from_db()
        assert sub.assignee == other_user

    def test_delete_returns_detail_and_task(self, api_client, user):
        task = make_task(user)
        sub = make_subtask(task)

        resp = api_client.delete(subtask_url(task, sub))

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["detail"] == "Subtask deleted successfully."
        assert resp.data["task"]["subtasks"] == []

    def test_unknown_subtask_is_not_found(self, api_client, user):
        task = make_task(user)
        other = make_task(user, "Other")
        sub = make_subtask(other)

        resp = api_client.patch(
            subtask_url(task, sub), {"completed": True}, format="json"
        )

        assert resp.status_code == status.HTTP_404_NOT_FOUND

    def test_foreign_task_subtasks_are_hidden(self, api_client, other_user):
        theirs = make_task(other_user)
        resp = api_client.post(subtasks_url(theirs), {"title": "x"}, format="json")
        assert resp.status_code == status.HTTP_404_NOT_FOUND
