"""drf-spectacular post-processing: one tag per operation, grouped by URL."""

from __future__ import annotations

from typing import Any

_HTTP_METHODS = {"get", "post", "put", "patch", "delete", "options", "head"}

# First match wins, so longer prefixes go first.
PATTERN_TAGS = [
    ("/api/v1/tasks", "Tasks"),
    ("/api/v1/auth/jwt", "JWT Authentication"),
    ("/api/v1/auth/", "Authentication"),
]

ALL_TAGS = list(dict.fromkeys(tag for _, tag in PATTERN_TAGS))


def assign_group_tag(path: str) -> str | None:
    return next(
        (tag for prefix, tag in PATTERN_TAGS if path.startswith(prefix)),
        None,
    )


def group_tags(result: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
    """Overwrite each operation's ``tags`` with its URL group.

    Paths outside the known groups keep whatever tags the view declared.
    """
    for path, path_item in result.get("paths", {}).items():
        tag = assign_group_tag(path)
        if tag is None:
            continue
        for method, operation in path_item.items():
            if method.lower() in _HTTP_METHODS and isinstance(operation, dict):
                operation["tags"] = [tag]

    declared = result.setdefault("tags", [])
    known = {entry.get("name") for entry in declared}
    declared.extend({"name": tag} for tag in ALL_TAGS if tag not in known)
    return result
