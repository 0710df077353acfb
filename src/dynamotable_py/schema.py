from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .codec import Derived, Hint, Primitive, parse_hint
from .errors import ValidationError
from .model import IndexSpec, KeySpec

BillingMode = str  # "PROVISIONED" | "PAY_PER_REQUEST"

_DERIVED_KEY_TYPES = {"json": "S", "isodate": "S", "bignum": "N", "timestamp": "N"}


def _throughput(read_capacity: int, write_capacity: int) -> dict[str, int]:
    if read_capacity <= 0 or write_capacity <= 0:
        raise ValidationError("capacity units must be > 0")
    return {"ReadCapacityUnits": int(read_capacity), "WriteCapacityUnits": int(write_capacity)}


def key_attribute_type(
    field: str,
    *,
    key_types: Mapping[str, Any] | None = None,
    mappings: Mapping[str, Any] | None = None,
) -> str:
    """Scalar wire type (``S``/``N``/``B``) of a key attribute.

    An explicit ``key_types`` entry wins over the field's hint; fields with
    neither are strings.
    """
    spec = (key_types or {}).get(field)
    if spec is None:
        spec = (mappings or {}).get(field)
    if spec is None:
        return "S"

    hint: Hint = parse_hint(spec)
    if isinstance(hint, Primitive) and hint.tag in ("S", "N", "B"):
        return hint.tag
    if isinstance(hint, Derived) and hint.kind in _DERIVED_KEY_TYPES:
        return _DERIVED_KEY_TYPES[hint.kind]
    raise ValidationError(f"unsupported key type ({spec!r}) for attribute {field}")


def _key_schema(partition: str, sort: str | None) -> list[dict[str, str]]:
    schema = [{"AttributeName": partition, "KeyType": "HASH"}]
    if sort is not None:
        schema.append({"AttributeName": sort, "KeyType": "RANGE"})
    return schema


def build_create_table_request(
    table_name: str,
    key: KeySpec,
    *,
    indexes: Sequence[IndexSpec] = (),
    key_types: Mapping[str, Any] | None = None,
    mappings: Mapping[str, Any] | None = None,
    read_capacity: int = 1,
    write_capacity: int = 1,
    billing_mode: BillingMode = "PROVISIONED",
) -> dict[str, Any]:
    if not table_name:
        raise ValidationError("table_name is required")

    billing_mode = (billing_mode or "PROVISIONED").strip() or "PROVISIONED"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")
    provisioned = billing_mode == "PROVISIONED"

    # base keys first, then index keys, in declaration order
    attr_names: list[str] = list(key)

    lsis: list[dict[str, Any]] = []
    gsis: list[dict[str, Any]] = []
    for idx in indexes:
        if idx.partition is None:
            raise ValidationError(f"index {idx.name}: partition field is unresolved")
        if idx.type == "LSI" and idx.partition != key.partition:
            raise ValidationError(f"LSI partition key must match table partition key: {idx.name}")

        for name in (idx.partition, idx.sort):
            if name is not None and name not in attr_names:
                attr_names.append(name)

        entry: dict[str, Any] = {
            "IndexName": idx.name,
            "KeySchema": _key_schema(idx.partition, idx.sort),
            "Projection": idx.projection.to_wire(),
        }
        if idx.type == "GSI":
            if provisioned:
                entry["ProvisionedThroughput"] = _throughput(idx.read_capacity, idx.write_capacity)
            gsis.append(entry)
        else:
            lsis.append(entry)

    req: dict[str, Any] = {
        "TableName": table_name,
        "KeySchema": _key_schema(key.partition, key.sort),
        "AttributeDefinitions": [
            {
                "AttributeName": name,
                "AttributeType": key_attribute_type(name, key_types=key_types, mappings=mappings),
            }
            for name in attr_names
        ],
    }
    if provisioned:
        req["ProvisionedThroughput"] = _throughput(read_capacity, write_capacity)
    else:
        req["BillingMode"] = billing_mode
    if lsis:
        req["LocalSecondaryIndexes"] = lsis
    if gsis:
        req["GlobalSecondaryIndexes"] = gsis
    return req


def build_update_table_request(
    table_name: str,
    *,
    read_capacity: int,
    write_capacity: int,
    global_indexes: Mapping[str, tuple[int, int]] | None = None,
) -> dict[str, Any]:
    if not table_name:
        raise ValidationError("table_name is required")

    req: dict[str, Any] = {
        "TableName": table_name,
        "ProvisionedThroughput": _throughput(read_capacity, write_capacity),
    }
    if global_indexes:
        req["GlobalSecondaryIndexUpdates"] = [
            {"Update": {"IndexName": name, "ProvisionedThroughput": _throughput(read, write)}}
            for name, (read, write) in global_indexes.items()
        ]
    return req
