from __future__ import annotations

import base64
import binascii
import json
import math
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal, DecimalException
from types import MappingProxyType
from typing import Any, Protocol

from boto3.dynamodb.types import DYNAMODB_CONTEXT

from .errors import EncodingError, UnknownWireTypeError, ValidationError

type WireAttribute = dict[str, Any]
type Record = dict[str, Any]
type ToWire = Callable[[Any, str | None, Mapping[str, Any] | None], WireAttribute | None]
type FromWire = Callable[[WireAttribute, str | None, Mapping[str, Any] | None], Any]

PRIMITIVE_TAGS = ("S", "N", "B", "SS", "NS", "BS")
DERIVED_KINDS = ("json", "bignum", "isodate", "timestamp", "mapS", "mapN", "mapB")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


class AttributeConverter(Protocol):
    def to_wire(self, value: Any, field: str | None, record: Mapping[str, Any] | None) -> Any: ...

    def from_wire(self, attr: WireAttribute, field: str | None, item: Mapping[str, Any] | None) -> Any: ...


@dataclass(frozen=True)
class Primitive:
    tag: str

    def __post_init__(self) -> None:
        if self.tag not in PRIMITIVE_TAGS:
            raise ValidationError(f"unsupported primitive type: {self.tag}")


@dataclass(frozen=True)
class Derived:
    kind: str

    def __post_init__(self) -> None:
        if self.kind not in DERIVED_KINDS:
            raise ValidationError(f"unsupported derived type: {self.kind}")


@dataclass(frozen=True)
class Custom:
    to_wire: ToWire | None = None
    from_wire: FromWire | None = None

    def __post_init__(self) -> None:
        if self.to_wire is None and self.from_wire is None:
            raise ValidationError("custom hint needs to_wire and/or from_wire")

    @classmethod
    def from_converter(cls, converter: AttributeConverter) -> Custom:
        return cls(to_wire=getattr(converter, "to_wire", None), from_wire=getattr(converter, "from_wire", None))


type Hint = Primitive | Derived | Custom


def parse_hint(spec: str | Mapping[str, Any] | tuple[Any, Any] | AttributeConverter | Hint) -> Hint:
    if isinstance(spec, (Primitive, Derived, Custom)):
        return spec
    if isinstance(spec, str):
        if spec in PRIMITIVE_TAGS:
            return Primitive(spec)
        if spec in DERIVED_KINDS:
            return Derived(spec)
        raise ValidationError(f"unsupported type hint: {spec}")
    if isinstance(spec, Mapping):
        unknown = set(spec).difference({"to", "from"})
        if unknown:
            raise ValidationError(f"custom hint accepts only 'to'/'from': {sorted(unknown)}")
        return Custom(to_wire=spec.get("to"), from_wire=spec.get("from"))
    if isinstance(spec, tuple) and len(spec) == 2:
        return Custom(to_wire=spec[0], from_wire=spec[1])
    if hasattr(spec, "to_wire") or hasattr(spec, "from_wire"):
        return Custom.from_converter(spec)
    raise ValidationError(f"unsupported type hint: {spec!r}")


class FieldMapping(Mapping[str, Hint]):
    """Read-only field name -> Hint table, fixed when a table handle is built."""

    __slots__ = ("_hints",)

    def __init__(self, hints: Mapping[str, Any] | None = None) -> None:
        self._hints: Mapping[str, Hint] = MappingProxyType(
            {str(name): parse_hint(spec) for name, spec in (hints or {}).items()}
        )

    def __getitem__(self, name: str) -> Hint:
        return self._hints[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._hints)

    def __len__(self) -> int:
        return len(self._hints)

    def __repr__(self) -> str:
        return f"FieldMapping({dict(self._hints)!r})"


def is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, bytearray)) and len(value) == 0:
        return True
    if isinstance(value, (list, tuple, set, frozenset, dict)) and len(value) == 0:
        return True
    return False


def is_empty_attribute(attr: Any) -> bool:
    if not attr:
        return True
    return any(attr.get(tag) in ("", []) for tag in PRIMITIVE_TAGS)


def number_text(value: Any) -> str:
    if isinstance(value, bool):
        raise EncodingError("booleans cannot be encoded as numbers")

    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"cannot encode non-finite number: {value!r}")
        text = str(int(value)) if value.is_integer() and abs(value) < 1e16 else repr(value)
    elif isinstance(value, (int, Decimal)):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        raise EncodingError(f"cannot encode {type(value).__name__} as a number")

    try:
        parsed = DYNAMODB_CONTEXT.create_decimal(text)
    except DecimalException as err:
        raise EncodingError(f"invalid number: {text!r}") from err
    if not parsed.is_finite():
        raise EncodingError(f"cannot encode non-finite number: {text!r}")
    return text


def number_value(text: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError as err:
        raise EncodingError(f"invalid number: {text!r}") from err


def b64encode(value: Any) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    if not isinstance(value, (bytes, bytearray)):
        raise EncodingError(f"cannot encode {type(value).__name__} as binary")
    return base64.b64encode(bytes(value)).decode("ascii")


def b64decode(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as err:
        raise EncodingError(f"invalid base64 payload: {text!r}") from err


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value if isinstance(value, str) else str(value)


def _members(value: Any) -> list[Any]:
    if isinstance(value, (set, frozenset)):
        try:
            members = sorted(value)
        except TypeError:
            members = list(value)
    elif isinstance(value, (list, tuple)):
        members = list(value)
    else:
        members = [value]
    return members


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _dumps(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as err:
        raise EncodingError(f"cannot serialize {type(value).__name__} as JSON") from err


def _as_utc(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise EncodingError(f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _payload(attr: Mapping[str, Any], *tags: str) -> tuple[str, Any]:
    for tag in tags:
        if attr.get(tag) is not None:
            return tag, attr[tag]
    raise UnknownWireTypeError(attr)


def _encode_primitive(tag: str, value: Any) -> WireAttribute | None:
    if tag == "S":
        return {"S": _text(value)}
    if tag == "N":
        return {"N": number_text(value)}
    if tag == "B":
        return {"B": b64encode(value)}
    if tag == "SS":
        return {"SS": _dedupe([_text(v) for v in _members(value)])}
    if tag == "NS":
        return {"NS": _dedupe([number_text(v) for v in _members(value)])}
    return {"BS": _dedupe([b64encode(v) for v in _members(value)])}


def _encode_derived(kind: str, value: Any) -> WireAttribute | None:
    if kind == "json":
        return {"S": _dumps(value)}

    if kind == "bignum":
        if isinstance(value, (list, tuple, set, frozenset)):
            return {"NS": _dedupe([number_text(v) for v in _members(value)])}
        return {"N": number_text(value)}

    if kind == "isodate":
        text = _as_utc(value).isoformat(timespec="milliseconds")
        return {"S": text.replace("+00:00", "Z")}

    if kind == "timestamp":
        if isinstance(value, datetime):
            return {"N": str((_as_utc(value) - _EPOCH) // _ONE_MS)}
        return {"N": number_text(value)}

    # mapS / mapN / mapB
    if not isinstance(value, Mapping):
        raise EncodingError(f"{kind} expects a mapping, got {type(value).__name__}")
    members = [k for k, marker in value.items() if marker]
    if not members:
        return None
    if kind == "mapS":
        return {"SS": _dedupe([_text(m) for m in members])}
    if kind == "mapN":
        return {"NS": _dedupe([number_text(m) for m in members])}
    return {"BS": _dedupe([m if isinstance(m, str) else b64encode(m) for m in members])}


def infer_attribute(value: Any) -> WireAttribute | None:
    if is_absent(value):
        return None
    if isinstance(value, str):
        return {"S": value}
    if isinstance(value, bool):
        return {"S": "true" if value else "false"}
    if isinstance(value, (int, float, Decimal)):
        return {"N": number_text(value)}
    if isinstance(value, (bytes, bytearray)):
        return {"B": b64encode(value)}

    if isinstance(value, (list, tuple, set, frozenset)):
        members = _members(value)
        if all(isinstance(m, str) for m in members):
            return {"SS": _dedupe(members)}
        if all(isinstance(m, (int, float, Decimal)) and not isinstance(m, bool) for m in members):
            return {"NS": _dedupe([number_text(m) for m in members])}
        if all(isinstance(m, (bytes, bytearray)) for m in members):
            return {"BS": _dedupe([b64encode(m) for m in members])}

    text = _dumps(value)
    return {"S": text} if text else None


def infer_value(attr: Mapping[str, Any]) -> Any:
    if attr.get("S") is not None:
        text = attr["S"]
        if text == "true":
            return True
        if text == "false":
            return False
        if text[:1] in ("{", "["):
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text
    if attr.get("N") is not None:
        return number_value(attr["N"])
    if attr.get("B") is not None:
        return b64decode(attr["B"])
    if attr.get("SS") is not None:
        return list(attr["SS"])
    if attr.get("NS") is not None:
        return [number_value(v) for v in attr["NS"]]
    if attr.get("BS") is not None:
        return [b64decode(v) for v in attr["BS"]]
    raise UnknownWireTypeError(attr)


def _decode_primitive(tag: str, attr: Mapping[str, Any]) -> Any:
    _, payload = _payload(attr, tag)
    if tag == "S":
        return payload
    if tag == "N":
        return number_value(payload)
    if tag == "B":
        return b64decode(payload)
    if tag == "SS":
        return list(payload)
    if tag == "NS":
        return [number_value(v) for v in payload]
    return [b64decode(v) for v in payload]


def _decode_derived(kind: str, attr: Mapping[str, Any]) -> Any:
    if kind == "json":
        _, text = _payload(attr, "S")
        try:
            return json.loads(text)
        except ValueError as err:
            raise EncodingError(f"invalid JSON payload: {text!r}") from err

    if kind == "bignum":
        tag, payload = _payload(attr, "N", "NS")
        return payload if tag == "N" else list(payload)

    if kind == "isodate":
        _, text = _payload(attr, "S")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as err:
            raise EncodingError(f"invalid ISO-8601 date: {text!r}") from err
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)

    if kind == "timestamp":
        _, text = _payload(attr, "N")
        try:
            millis = int(Decimal(text))
        except DecimalException as err:
            raise EncodingError(f"invalid timestamp: {text!r}") from err
        return _EPOCH + timedelta(milliseconds=millis)

    _, members = _payload(attr, "SS", "NS", "BS")
    return {m: True for m in members}


class AttributeCodec:
    """Encodes single native values to wire attributes and back.

    Dispatch order is custom transform, declared hint, then inference from the
    runtime shape of the value (or the populated variant of the attribute).
    Only hinted fields round-trip exactly: an inferred ``True`` comes back from
    ``{"S": "true"}`` but so would the string ``"true"``.
    """

    def __init__(self, mapping: FieldMapping | Mapping[str, Any] | None = None) -> None:
        self._mapping = mapping if isinstance(mapping, FieldMapping) else FieldMapping(mapping)

    @property
    def mapping(self) -> FieldMapping:
        return self._mapping

    def hint_for(self, field: str | None) -> Hint | None:
        if field is None:
            return None
        return self._mapping.get(field)

    def encode(
        self, value: Any, field: str | None = None, record: Mapping[str, Any] | None = None
    ) -> WireAttribute | None:
        hint = self.hint_for(field)

        if isinstance(hint, Custom) and hint.to_wire is not None:
            attr = hint.to_wire(value, field, record)
            if attr is None:
                return None
            if not isinstance(attr, dict) or len(attr) != 1 or next(iter(attr)) not in PRIMITIVE_TAGS:
                raise EncodingError(f"custom transform for {field!r} returned a malformed attribute: {attr!r}")
            return None if is_empty_attribute(attr) else attr

        if is_absent(value):
            return None
        if isinstance(hint, Primitive):
            return _encode_primitive(hint.tag, value)
        if isinstance(hint, Derived):
            return _encode_derived(hint.kind, value)
        return infer_attribute(value)

    def decode(
        self, attr: WireAttribute, field: str | None = None, item: Mapping[str, Any] | None = None
    ) -> Any:
        hint = self.hint_for(field)

        if isinstance(hint, Custom) and hint.from_wire is not None:
            return hint.from_wire(attr, field, item)

        if not isinstance(attr, Mapping):
            raise UnknownWireTypeError(attr)
        if isinstance(hint, Primitive):
            return _decode_primitive(hint.tag, attr)
        if isinstance(hint, Derived):
            return _decode_derived(hint.kind, attr)
        return infer_value(attr)
