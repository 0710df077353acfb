from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from .client import StoreClient
from .errors import PageLimitExceededError, ValidationError

LOG = logging.getLogger(__name__)

type ItemDecoder = Callable[[Mapping[str, Any]], Any]


class PaginatedReader:
    """Drives one Query or Scan across ``LastEvaluatedKey`` cursors.

    ``Select=COUNT`` requests return the summed ``Count`` of every page. Other
    requests return the decoded items, stopping early once a caller ``Limit``
    is covered by what has been read so far.
    """

    def __init__(self, client: StoreClient, decode: ItemDecoder, *, max_pages: int | None = None) -> None:
        if max_pages is not None and max_pages <= 0:
            raise ValidationError("max_pages must be > 0")
        self._client = client
        self._decode = decode
        self._max_pages = max_pages

    def read(self, operation: str, payload: Mapping[str, Any]) -> list[Any] | int:
        req = dict(payload)
        counting = req.get("Select") == "COUNT"
        limit = req.get("Limit")

        items: list[Any] = []
        count = 0
        pages = 0

        while True:
            if self._max_pages is not None and pages >= self._max_pages:
                raise PageLimitExceededError(operation=operation, pages=pages)

            resp = self._client.request(operation, dict(req))
            pages += 1

            if counting:
                count += int(resp.get("Count") or 0)
            else:
                items.extend(self._decode(item) for item in resp.get("Items") or [])

            cursor = resp.get("LastEvaluatedKey")
            if not cursor:
                break
            if limit is not None and not counting and len(items) >= limit:
                break

            LOG.debug("%s page %d returned a cursor, continuing", operation, pages)
            req["ExclusiveStartKey"] = cursor

        return count if counting else items

    def read_page(self, operation: str, payload: Mapping[str, Any]) -> tuple[list[Any] | int, Any]:
        resp = self._client.request(operation, dict(payload))
        cursor = resp.get("LastEvaluatedKey") or None
        if payload.get("Select") == "COUNT":
            return int(resp.get("Count") or 0), cursor
        return [self._decode(item) for item in resp.get("Items") or []], cursor
