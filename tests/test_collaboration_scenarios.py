"""End-to-end collaboration flows: REST mutations, rooms and presence."""

import pytest
from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from taskhub.realtime.identity import identity_for_user
from taskhub.tasks.models import Task

pytestmark = pytest.mark.django_db
User = get_user_model()


def make_user(username):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="Passw0rd!x",  # noqa: S106
        name=username.title(),
    )


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


class TestCollaborationScenarios:
    def connect(self, hub, sid, user):
        async_to_sync(hub.connect)(sid, identity_for_user(user))

    def join(self, hub, sid, task_id):
        return async_to_sync(hub.handle)(sid, "join-task", {"taskId": str(task_id)})

    def test_two_tabs_of_one_user(self, hub, transport):
        watcher = make_user("watcher")
        alice = make_user("alice")
        self.connect(hub, "sid-w", watcher)

        self.connect(hub, "sid-a1", alice)
        self.connect(hub, "sid-a2", alice)
        async_to_sync(hub.disconnect)("sid-a1")

        statuses = [
            m.status.value
            for m in transport.messages_for("sid-w", "user-status-changed")
        ]
        assert statuses == ["online"]
        assert [u.user_id for u in hub.online_users()] == [watcher.pk, alice.pk]

        async_to_sync(hub.disconnect)("sid-a2")
        statuses = [
            m.status.value
            for m in transport.messages_for("sid-w", "user-status-changed")
        ]
        assert statuses == ["online", "offline"]

    def test_update_reaches_other_room_member_only(
        self,
        hub,
        transport,
        django_capture_on_commit_callbacks,
    ):
        owner = make_user("owner")
        task = Task.objects.create(owner=owner, title="Shared")
        self.connect(hub, "sid-a", owner)
        self.connect(hub, "sid-b", owner)
        self.connect(hub, "sid-x", make_user("outsider"))
        self.join(hub, "sid-a", task.pk)
        self.join(hub, "sid-b", task.pk)
        transport.clear()

        with django_capture_on_commit_callbacks(execute=True):
            client_for(owner).patch(
                f"/api/v1/tasks/{task.pk}/",
                {"status": "completed"},
                format="json",
                HTTP_X_SOCKET_ID="sid-a",
            )

        assert transport.recipients("task-changed") == {"sid-b"}
        assert transport.messages_for("sid-x") == []

    def test_creation_is_seen_by_every_other_connection(
        self,
        hub,
        transport,
        django_capture_on_commit_callbacks,
    ):
        carol = make_user("carol")
        dave = make_user("dave")
        self.connect(hub, "sid-c", carol)
        self.connect(hub, "sid-d", dave)
        transport.clear()

        with django_capture_on_commit_callbacks(execute=True):
            resp = client_for(carol).post(
                "/api/v1/tasks/",
                {"title": "Announce"},
                format="json",
                HTTP_X_SOCKET_ID="sid-c",
            )

        [created] = transport.messages_for("sid-d", "new-task")
        assert created.task["id"] == resp.data["id"]
        assert created.created_by.user_id == carol.pk
        assert transport.messages_for("sid-c") == []

    def test_delete_then_stray_update(
        self,
        hub,
        transport,
        django_capture_on_commit_callbacks,
    ):
        owner = make_user("owner")
        task = Task.objects.create(owner=owner, title="Doomed")
        task_id = str(task.pk)
        self.connect(hub, "sid-a", owner)
        self.join(hub, "sid-a", task_id)
        transport.clear()

        with django_capture_on_commit_callbacks(execute=True):
            client_for(owner).delete(f"/api/v1/tasks/{task_id}/")
        assert transport.events_for("sid-a") == ["task-removed"]

        transport.clear()
        delivered = async_to_sync(hub.gateway.after_update)(
            task_id,
            {"title": "too late"},
            identity_for_user(owner),
        )
        assert delivered == frozenset()
        assert transport.sent == []
        assert self.join(hub, "sid-a", task_id)["ok"] is False
