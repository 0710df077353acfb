from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .codec import AttributeCodec, WireAttribute, is_empty_attribute
from .errors import ValidationError
from .model import KeySpec

type Hook = Callable[[Any], Any]


def _default_pre(source: Any) -> dict[str, Any] | None:
    return {} if source is not None else None


def _identity(value: Any) -> Any:
    return value


class ItemMapper:
    def __init__(
        self,
        codec: AttributeCodec,
        *,
        pre_to: Hook | None = None,
        post_to: Hook | None = None,
        pre_from: Hook | None = None,
        post_from: Hook | None = None,
    ) -> None:
        self._codec = codec
        self._pre_to = pre_to or _default_pre
        self._post_to = post_to or _identity
        self._pre_from = pre_from or _default_pre
        self._post_from = post_from or _identity

    def to_item(self, record: Mapping[str, Any] | None) -> dict[str, WireAttribute] | None:
        item = self._pre_to(record)
        if item is not None and record is not None:
            for name, value in record.items():
                attr = self._codec.encode(value, name, record)
                if not is_empty_attribute(attr):
                    item[name] = attr
        return self._post_to(item)

    def from_item(self, item: Mapping[str, WireAttribute] | None) -> dict[str, Any] | None:
        record = self._pre_from(item)
        if record is not None and item is not None:
            for name, attr in item.items():
                value = self._codec.decode(attr, name, item)
                if value is not None:
                    record[name] = value
        return self._post_from(record)


class KeyResolver:
    """Builds wire keys from a scalar, a positional sequence or a named mapping."""

    def __init__(self, codec: AttributeCodec, key: KeySpec) -> None:
        self._codec = codec
        self._key = key

    def resolve(self, *key: Any) -> dict[str, WireAttribute]:
        if not key:
            raise ValidationError("key is required")

        if len(key) > 1:
            values = list(key)
        else:
            (single,) = key
            if isinstance(single, Mapping):
                return self._resolve_named(single)
            values = list(single) if isinstance(single, (list, tuple)) else [single]

        if len(values) != len(self._key):
            raise ValidationError(f"expected {len(self._key)} key value(s), got {len(values)}")
        return {name: self._component(name, value) for name, value in zip(self._key, values, strict=True)}

    def from_record(self, record: Mapping[str, Any]) -> dict[str, WireAttribute]:
        return self._resolve_named({name: record.get(name) for name in self._key})

    def _resolve_named(self, key: Mapping[str, Any]) -> dict[str, WireAttribute]:
        for name in key:
            if name not in self._key:
                raise ValidationError(f"not a key field: {name}")
        for name in self._key:
            if name not in key:
                raise ValidationError(f"missing key field: {name}")
        return {name: self._component(name, key[name]) for name in self._key}

    def _component(self, name: str, value: Any) -> WireAttribute:
        attr = self._codec.encode(value, name)
        if is_empty_attribute(attr):
            raise ValidationError(f"key field {name} cannot be empty")
        return attr  # type: ignore[return-value]
