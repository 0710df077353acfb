from __future__ import annotations

import base64
import json

import pytest

from dynamotable_py import ValidationError
from dynamotable_py.query import Cursor, encode_cursor, decode_cursor


def test_cursor_round_trip() -> None:
    last_key = {"sk": {"N": "1"}, "pk": {"S": "a"}, "bin": {"B": "AQI="}}
    cursor = encode_cursor(last_key, index="byEmail")

    assert decode_cursor(cursor) == Cursor(last_key=last_key, index="byEmail")


def test_cursor_without_index() -> None:
    cursor = encode_cursor({"pk": {"S": "a"}})
    assert decode_cursor(cursor) == Cursor(last_key={"pk": {"S": "a"}}, index=None)


def test_cursor_tolerates_stripped_padding() -> None:
    cursor = encode_cursor({"pk": {"S": "ab"}}).rstrip("=")
    assert decode_cursor(cursor).last_key == {"pk": {"S": "ab"}}


def test_empty_last_key_gives_empty_cursor() -> None:
    assert encode_cursor(None) == ""
    assert encode_cursor({}) == ""


def _token(payload: object) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


@pytest.mark.parametrize(
    "cursor",
    [
        "",
        "   ",
        "!!!not-base64!!!",
        _token([1, 2]),
        _token({"index": "x"}),
        _token({"lastKey": {}}),
        _token({"lastKey": {"pk": {"BOOL": True}}}),
        _token({"lastKey": {"pk": {"S": 1}}}),
        _token({"lastKey": {"pk": {"SS": "a"}}}),
    ],
)
def test_bad_cursors_are_rejected(cursor: str) -> None:
    with pytest.raises(ValidationError):
        decode_cursor(cursor)


def test_encode_rejects_malformed_keys() -> None:
    with pytest.raises(ValidationError):
        encode_cursor([("pk", "a")])
    with pytest.raises(ValidationError):
        encode_cursor({"pk": {"S": "a", "N": "1"}})
