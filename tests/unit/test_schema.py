from __future__ import annotations

import pytest

from dynamotable_py import KeySpec, Projection, ValidationError, gsi, lsi
from dynamotable_py.model import resolve_indexes
from dynamotable_py.schema import build_create_table_request, build_update_table_request, key_attribute_type


@pytest.fixture()
def key() -> KeySpec:
    return KeySpec(("PK", "SK"))


def test_build_create_table_request_with_indexes(key: KeySpec) -> None:
    indexes = resolve_indexes(
        key,
        [lsi("lsi-updated", sort="updated", projection=Projection.include("emailHash"))],
        [gsi("gsi-email", partition="emailHash", projection=Projection.keys_only(), read_capacity=3, write_capacity=4)],
    )

    req = build_create_table_request(
        "tbl",
        key,
        indexes=indexes,
        key_types={"SK": "N"},
        mappings={"updated": "timestamp", "emailHash": "json"},
    )

    assert req == {
        "TableName": "tbl",
        "KeySchema": [{"AttributeName": "PK", "KeyType": "HASH"}, {"AttributeName": "SK", "KeyType": "RANGE"}],
        "AttributeDefinitions": [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "N"},
            {"AttributeName": "updated", "AttributeType": "N"},
            {"AttributeName": "emailHash", "AttributeType": "S"},
        ],
        "ProvisionedThroughput": {"ReadCapacityUnits": 1, "WriteCapacityUnits": 1},
        "LocalSecondaryIndexes": [
            {
                "IndexName": "lsi-updated",
                "KeySchema": [
                    {"AttributeName": "PK", "KeyType": "HASH"},
                    {"AttributeName": "updated", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "INCLUDE", "NonKeyAttributes": ["emailHash"]},
            }
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "gsi-email",
                "KeySchema": [{"AttributeName": "emailHash", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "KEYS_ONLY"},
                "ProvisionedThroughput": {"ReadCapacityUnits": 3, "WriteCapacityUnits": 4},
            }
        ],
    }


def test_pay_per_request_omits_throughput(key: KeySpec) -> None:
    indexes = resolve_indexes(key, (), [gsi("g", partition="other", sort="SK")])
    req = build_create_table_request("tbl", key, indexes=indexes, billing_mode="PAY_PER_REQUEST")

    assert req["BillingMode"] == "PAY_PER_REQUEST"
    assert "ProvisionedThroughput" not in req
    assert "ProvisionedThroughput" not in req["GlobalSecondaryIndexes"][0]
    assert [d["AttributeName"] for d in req["AttributeDefinitions"]] == ["PK", "SK", "other"]


def test_build_create_table_request_validation(key: KeySpec) -> None:
    with pytest.raises(ValidationError):
        build_create_table_request("", key)
    with pytest.raises(ValidationError):
        build_create_table_request("tbl", key, billing_mode="ON_DEMAND")
    with pytest.raises(ValidationError):
        build_create_table_request("tbl", key, read_capacity=0)
    with pytest.raises(ValidationError):
        build_create_table_request("tbl", key, indexes=[lsi("unresolved", sort="x")])


@pytest.mark.parametrize(
    ("spec", "expected"),
    [(None, "S"), ("S", "S"), ("N", "N"), ("B", "B"), ("json", "S"), ("isodate", "S"), ("bignum", "N"), ("timestamp", "N")],
)
def test_key_attribute_type(spec: str | None, expected: str) -> None:
    mappings = {} if spec is None else {"k": spec}
    assert key_attribute_type("k", mappings=mappings) == expected


def test_key_types_win_over_hints() -> None:
    assert key_attribute_type("k", key_types={"k": "B"}, mappings={"k": "S"}) == "B"


@pytest.mark.parametrize("spec", ["SS", "NS", "mapS", {"to": lambda v, f, r: {"S": v}}])
def test_unsupported_key_types(spec: object) -> None:
    with pytest.raises(ValidationError):
        key_attribute_type("k", mappings={"k": spec})


def test_build_update_table_request() -> None:
    assert build_update_table_request("tbl", read_capacity=4, write_capacity=5) == {
        "TableName": "tbl",
        "ProvisionedThroughput": {"ReadCapacityUnits": 4, "WriteCapacityUnits": 5},
    }

    req = build_update_table_request("tbl", read_capacity=1, write_capacity=1, global_indexes={"g": (2, 3)})
    assert req["GlobalSecondaryIndexUpdates"] == [
        {"Update": {"IndexName": "g", "ProvisionedThroughput": {"ReadCapacityUnits": 2, "WriteCapacityUnits": 3}}}
    ]

    with pytest.raises(ValidationError):
        build_update_table_request("", read_capacity=1, write_capacity=1)
