from http import HTTPStatus
from unittest import mock

import pytest
from asgiref.sync import async_to_sync
from django.db import connection as dj_conn

from taskhub.realtime.tests.factories import identity

REDIS_URL = "redis://127.0.0.1:6379/0"


class DummyDbError(Exception):
    """Synthetic DB error for testing."""


@pytest.fixture
def without_redis(settings):
    settings.REDIS_URL = ""


@pytest.fixture
def redis_up(settings):
    settings.REDIS_URL = REDIS_URL
    with mock.patch("config.health.redis.Redis.ping", return_value=True):
        yield


@pytest.mark.django_db
def test_health_ok_without_redis(client, without_redis):
    resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"] == {"db": {"ok": True}}


@pytest.mark.django_db
def test_health_ok_with_redis(client, redis_up):
    resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["db"]["ok"] is True
    assert data["components"]["redis"]["ok"] is True


@pytest.mark.django_db
def test_health_reports_realtime_counters(client, without_redis, hub):
    async_to_sync(hub.connect)("sid-1", identity(1))
    async_to_sync(hub.connect)("sid-2", identity(1))
    async_to_sync(hub.handle)("sid-1", "join-task", "t1")

    data = client.get("/health/").json()

    assert data["realtime"] == {"connections": 2, "online_users": 1, "rooms": 1}


@pytest.mark.django_db
def test_health_degraded_when_configured_redis_fails(client, settings):
    settings.REDIS_URL = REDIS_URL
    with mock.patch(
        "config.health.redis.Redis.ping",
        side_effect=TimeoutError("redis timeout"),
    ):
        resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    data = resp.json()
    assert data["components"]["redis"]["ok"] is False
    assert data["status"] == "degraded"


@pytest.mark.django_db
def test_health_down_when_db_fails(client, monkeypatch, without_redis):
    msg = "db down"

    def raise_cursor():
        raise DummyDbError(msg)

    monkeypatch.setattr(dj_conn, "cursor", raise_cursor, raising=True)
    resp = client.get("/health/")
    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    data = resp.json()
    assert data["components"]["db"]["ok"] is False
    assert data["status"] == "down"
