from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from .codec import PRIMITIVE_TAGS
from .errors import ValidationError


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    index: str | None = None


def _ensure_single_key_map(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValidationError("attribute value must be a single-key map")
    (key, inner), *_ = value.items()
    return str(key), inner


def _check_attribute(av: Any) -> dict[str, Any]:
    kind, value = _ensure_single_key_map(av)

    if kind not in PRIMITIVE_TAGS:
        raise ValidationError(f"unsupported attribute value type: {kind}")
    if kind in {"S", "N", "B"}:
        if not isinstance(value, str):
            raise ValidationError(f"{kind} value must be a string")
    elif not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{kind} value must be a list of strings")
    return {kind: value}


def encode_cursor(last_key: Any, *, index: str | None = None) -> str:
    """Wraps a ``LastEvaluatedKey`` in a url-safe token bound to ``index``."""
    if not last_key:
        return ""
    if not isinstance(last_key, dict):
        raise ValidationError("last_key must be a map")

    last_key_json = {str(k): _check_attribute(last_key[k]) for k in sorted(last_key.keys())}
    payload: dict[str, Any] = {"lastKey": last_key_json}
    if index is not None:
        payload["index"] = index

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValidationError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    try:
        data = base64.urlsafe_b64decode(raw + padding).decode("utf-8")
        parsed = json.loads(data)
    except (binascii.Error, UnicodeDecodeError, ValueError) as err:
        raise ValidationError("cursor is malformed") from err
    if not isinstance(parsed, dict):
        raise ValidationError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValidationError("cursor lastKey is invalid")

    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _check_attribute(last_key_raw[k]) for k in sorted(last_key_raw.keys())},
        index=index if isinstance(index, str) else None,
    )
