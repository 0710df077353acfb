from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .mocks import ANY, FakeStoreClient


def no_sleep(_: float) -> None:
    return None


def page(items: list[dict[str, Any]], last_key: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Query/Scan response body with ``Count`` filled in."""
    resp: dict[str, Any] = {"Items": list(items), "Count": len(items), "ScannedCount": len(items)}
    if last_key:
        resp["LastEvaluatedKey"] = dict(last_key)
    return resp


__all__ = [
    "ANY",
    "FakeStoreClient",
    "no_sleep",
    "page",
]
