from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import boto3
import pytest
from moto import mock_aws

from dynamotable_py import Boto3StoreClient, Table

_START = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[Boto3StoreClient]:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    with mock_aws():
        yield Boto3StoreClient(boto3.client("dynamodb", region_name="us-east-1"))


@pytest.fixture()
def posts(client: Boto3StoreClient) -> Table:
    table = Table(
        "posts",
        client,
        key=["author", "created"],
        mappings={
            "author": "S",
            "created": "timestamp",
            "score": "N",
            "tags": "SS",
            "avatar": "B",
            "meta": "json",
        },
    )
    table.create_table(indexes={"byScore": "score"})
    return table


def test_create_table_and_status(posts: Table) -> None:
    description = posts.describe_table()

    assert description["TableName"] == "posts"
    assert [idx["IndexName"] for idx in description["LocalSecondaryIndexes"]] == ["byScore"]
    assert posts.table_status() == "ACTIVE"
    assert "posts" in posts.list_tables()


def test_put_get_update_delete_round_trip(posts: Table) -> None:
    record = {
        "author": "alice",
        "created": _START,
        "score": 10,
        "tags": ["a", "b"],
        "avatar": b"\x00\x01\xff",
        "meta": {"draft": False, "words": [1, 2]},
        "title": "hello",
    }
    posts.put(record)

    got = posts.get(["alice", _START])
    assert got is not None
    assert got["created"] == _START
    assert got["avatar"] == b"\x00\x01\xff"
    assert got["meta"] == {"draft": False, "words": [1, 2]}
    assert sorted(got["tags"]) == ["a", "b"]
    assert got["title"] == "hello"

    posts.update(["alice", _START], {"put": {"title": "", "score": 11}, "add": {"tags": ["c"]}})
    got = posts.get({"author": "alice", "created": _START})
    assert got is not None
    assert "title" not in got
    assert got["score"] == 11
    assert sorted(got["tags"]) == ["a", "b", "c"]

    assert posts.increment(["alice", _START], "score", 5) == 16

    posts.delete(["alice", _START])
    assert posts.get(["alice", _START]) is None


def test_batches_queries_and_counts(posts: Table) -> None:
    records = [
        {"author": "bob" if i % 2 else "alice", "created": _START + timedelta(minutes=i), "score": 100 - i}
        for i in range(30)
    ]
    posts.batch_write(records)

    keys = [[r["author"], r["created"]] for r in records]
    found = posts.batch_get(keys)
    assert len(found) == 30
    assert sorted(r["score"] for r in found) == sorted(r["score"] for r in records)

    window = posts.query(
        {"author": "alice", "created": {"between": [_START, _START + timedelta(minutes=9)]}}
    )
    assert [r["created"] for r in window] == [_START + timedelta(minutes=m) for m in (0, 2, 4, 6, 8)]

    by_score = posts.query({"author": "bob", "score": {">=": 95}})
    assert sorted(r["score"] for r in by_score) == [95, 97, 99]

    assert posts.query({"author": "alice"}, {"Select": "COUNT"}) == 15
    assert len(posts.scan({"score": {"<": 80}})) == 9

    first = posts.query_page({"author": "alice"}, {"Limit": 10})
    assert len(first.items) == 10
    assert first.next_cursor
    rest = posts.query_page({"author": "alice"}, {"Limit": 10}, cursor=first.next_cursor)
    assert len(rest.items) == 5

    posts.batch_write({"deletes": keys[:20]})
    assert len(posts.scan()) == 10


def test_counter_and_delete_table(client: Boto3StoreClient) -> None:
    counters = Table("counters", client, key_types={"id": "N"})
    counters.create_table()

    counters.init_id(41)
    assert counters.next_id() == 42
    assert counters.next_id(3) == 45

    counters.delete_table()
    assert counters.table_status() is None
