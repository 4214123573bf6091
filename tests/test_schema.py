import pytest

from config.schema import assign_group_tag
from config.schema import group_tags


@pytest.mark.parametrize(
    ("path", "tag"),
    [
        ("/api/v1/tasks/", "Tasks"),
        ("/api/v1/tasks/{id}/subtasks/", "Tasks"),
        ("/api/v1/auth/jwt/create/", "JWT Authentication"),
        ("/api/v1/auth/login/", "Authentication"),
        ("/health/", None),
    ],
)
def test_assign_group_tag(path, tag):
    assert assign_group_tag(path) == tag


def test_group_tags_overwrites_operation_tags():
    result = {
        "paths": {
            "/api/v1/tasks/": {"get": {"tags": ["api"]}, "parameters": []},
            "/other/": {"get": {"tags": ["keep"]}},
        },
        "tags": [{"name": "Tasks"}],
    }

    out = group_tags(result)

    assert out["paths"]["/api/v1/tasks/"]["get"]["tags"] == ["Tasks"]
    assert out["paths"]["/other/"]["get"]["tags"] == ["keep"]
    assert [t["name"] for t in out["tags"]] == [
        "Tasks",
        "JWT Authentication",
        "Authentication",
    ]


@pytest.mark.django_db
def test_openapi_schema_renders(admin_client):
    resp = admin_client.get("/api/v1/schema/")
    assert resp.status_code == 200
