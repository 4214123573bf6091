import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from taskhub.realtime import socketio as realtime
from taskhub.realtime.hub import CollaborationHub
from taskhub.realtime.tests.factories import RecordingTransport


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture(autouse=True)
def hub(transport, monkeypatch):
    """Fresh collaboration state per test, wired to a recording transport."""
    test_hub = CollaborationHub(transport)
    monkeypatch.setattr(realtime, "hub", test_hub)
    return test_hub


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="alice",
        email="alice@example.com",
        password="AlicePass!123",  # noqa: S106
        name="Alice",
    )


@pytest.fixture
def other_user(db):
    return get_user_model().objects.create_user(
        username="bob",
        email="bob@example.com",
        password="BobPass!123",  # noqa: S106
        name="Bob",
    )


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client
