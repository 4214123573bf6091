from __future__ import annotations

from typing import Any

import redis
from django.conf import settings
from django.db import connection
from django.db import transaction
from django.http import JsonResponse


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def check_redis(url: str) -> dict[str, Any]:
    try:
        client = redis.Redis.from_url(
            url,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        )
        client.ping()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def realtime_info() -> dict[str, Any]:
    """In-process collaboration counters; informational only."""
    from taskhub.realtime import socketio as realtime  # noqa: PLC0415

    hub = realtime.hub
    return {
        "connections": len(hub.registry),
        "online_users": len(hub.online_users()),
        "rooms": len(hub.rooms),
    }


@transaction.non_atomic_requests
def health(request):
    components = {"db": check_db()}
    redis_url = getattr(settings, "REDIS_URL", "")
    if redis_url:
        components["redis"] = check_redis(redis_url)

    all_ok = all(v.get("ok", False) for v in components.values())
    some_ok = any(v.get("ok", False) for v in components.values())

    status = "ok" if all_ok else ("degraded" if some_ok else "down")
    http_status = 200 if all_ok else 503

    return JsonResponse(
        {"status": status, "components": components, "realtime": realtime_info()},
        status=http_status,
    )
