from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from taskhub.tasks.models import Task
from taskhub.tasks.tests.factories import make_subtask
from taskhub.tasks.tests.factories import make_task

pytestmark = pytest.mark.django_db

IMPORT_URL = "/api/v1/tasks/import/"
EXPORT_URL = "/api/v1/tasks/export/"
STATS_URL = "/api/v1/tasks/stats/"


class TestImport:
    def test_import_creates_tasks_with_subtasks(self, api_client, user):
        payload = {
            "tasks": [
                {
                    "title": "Imported",
                    "priority": "high",
                    "dueDate": "2030-01-01T09:00:00Z",
                    "subtasks": [{"title": "one"}, {"title": "two", "completed": True}],
                },
                {"title": "Plain"},
            ],
        }

        resp = api_client.post(IMPORT_URL, payload, format="json")

        assert resp.status_code == status.HTTP_201_CREATED, resp.data
        assert resp.data["skipped"] == 0
        assert len(resp.data["imported"]) == 2
        task = Task.objects.get(owner=user, title="Imported")
        assert task.priority == Task.Priority.HIGH
        assert task.due_date is not None
        assert list(task.subtasks.values_list("title", "position")) == [
            ("one", 0),
            ("two", 1),
        ]

    def test_duplicates_are_skipped(self, api_client, user):
        make_task(user, "Existing")

        resp = api_client.post(
            IMPORT_URL,
            {"tasks": [{"title": "Existing"}]},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data == {"imported": [], "skipped": 1}
        assert Task.objects.filter(owner=user, title="Existing").count() == 1

    def test_empty_batch_is_rejected(self, api_client):
        resp = api_client.post(IMPORT_URL, {"tasks": []}, format="json")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST


class TestExportAndStats:
    def test_export_contains_only_own_tasks(self, api_client, user, other_user):
        mine = make_task(user, "Mine")
        make_subtask(mine)
        make_task(other_user, "Theirs")

        resp = api_client.get(EXPORT_URL)

        assert resp.status_code == status.HTTP_200_OK
        assert [t["title"] for t in resp.data["tasks"]] == ["Mine"]
        assert len(resp.data["tasks"][0]["subtasks"]) == 1

    def test_stats(self, api_client, user, other_user):
        past = timezone.now() - timedelta(days=1)
        done = make_task(user, "Done", status="completed", priority="high")
        make_task(user, "Late", due_date=past)
        make_task(user, "Doing", status="in-progress", priority="low")
        make_task(other_user, "Theirs", status="completed")
        make_subtask(done, completed=True)
        make_subtask(done, "Other", position=1)

        resp = api_client.get(STATS_URL)

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["total"] == 3
        assert resp.data["by_status"] == {
            "pending": 1,
            "in-progress": 1,
            "completed": 1,
        }
        assert resp.data["by_priority"] == {"low": 1, "medium": 1, "high": 1}
        assert resp.data["overdue"] == 1
        assert resp.data["completion_rate"] == 0.33
        assert resp.data["subtasks"] == {"total": 2, "completed": 1}
