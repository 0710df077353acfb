from __future__ import annotations

import pytest

from dynamotable_py import PageLimitExceededError, ValidationError
from dynamotable_py.mocks import FakeStoreClient
from dynamotable_py.pagination import PaginatedReader
from dynamotable_py.testkit import page


def _decode(item: dict) -> str:
    return item["id"]["S"]


def _no_cursor(req: dict) -> None:
    assert "ExclusiveStartKey" not in req


def test_follows_cursor_until_exhausted() -> None:
    client = FakeStoreClient()
    client.expect("Query", _no_cursor, response=page([{"id": {"S": "a"}}], last_key={"id": {"S": "a"}}))
    client.expect(
        "Query",
        {"TableName": "t", "ExclusiveStartKey": {"id": {"S": "a"}}},
        response=page([{"id": {"S": "b"}}]),
    )

    conditions = {"id": {"ComparisonOperator": "NOT_NULL"}}
    payload = {"TableName": "t", "KeyConditions": conditions}
    out = PaginatedReader(client, _decode).read("Query", payload)

    assert out == ["a", "b"]
    assert len(client.calls) == 2
    assert payload == {"TableName": "t", "KeyConditions": conditions}
    client.assert_no_pending()


def test_count_is_summed_across_pages() -> None:
    client = FakeStoreClient()
    client.expect("Scan", response={"Count": 2, "LastEvaluatedKey": {"id": {"S": "x"}}})
    client.expect("Scan", response={"Count": 3})

    out = PaginatedReader(client, _decode).read("Scan", {"TableName": "t", "Select": "COUNT"})

    assert out == 5
    assert isinstance(out, int)
    client.assert_no_pending()


def test_limit_stops_once_satisfied() -> None:
    client = FakeStoreClient()
    client.expect(
        "Scan",
        response=page([{"id": {"S": "a"}}, {"id": {"S": "b"}}], last_key={"id": {"S": "b"}}),
    )

    out = PaginatedReader(client, _decode).read("Scan", {"TableName": "t", "Limit": 2})

    assert out == ["a", "b"]
    assert len(client.calls) == 1


def test_limit_not_yet_satisfied_keeps_reading() -> None:
    client = FakeStoreClient()
    client.expect("Scan", response=page([{"id": {"S": "a"}}], last_key={"id": {"S": "a"}}))
    client.expect("Scan", response=page([{"id": {"S": "b"}}]))

    out = PaginatedReader(client, _decode).read("Scan", {"TableName": "t", "Limit": 2})

    assert out == ["a", "b"]


def test_page_ceiling() -> None:
    client = FakeStoreClient()
    client.on("Scan", lambda req: page([{"id": {"S": "a"}}], last_key={"id": {"S": "a"}}))

    with pytest.raises(PageLimitExceededError) as excinfo:
        PaginatedReader(client, _decode, max_pages=3).read("Scan", {"TableName": "t"})

    assert excinfo.value.pages == 3
    assert len(client.calls) == 3

    with pytest.raises(ValidationError):
        PaginatedReader(client, _decode, max_pages=0)


def test_read_page_returns_cursor() -> None:
    client = FakeStoreClient()
    client.expect("Query", response=page([{"id": {"S": "a"}}], last_key={"id": {"S": "a"}}))
    client.expect("Query", response=page([]))

    reader = PaginatedReader(client, _decode)
    assert reader.read_page("Query", {"TableName": "t"}) == (["a"], {"id": {"S": "a"}})
    assert reader.read_page("Query", {"TableName": "t"}) == ([], None)
