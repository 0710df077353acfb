from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .client import StoreClient
from .errors import BatchRetryExceededError, ValidationError
from .pagination import ItemDecoder
from .scatter import gather

LOG = logging.getLogger(__name__)

MAX_GET = 100
MAX_WRITE = 25


def _backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


@dataclass(frozen=True)
class BatchGetRequest:
    table_name: str
    keys: Sequence[dict[str, Any]]
    decode: ItemDecoder
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchWriteRequest:
    table_name: str
    puts: Sequence[dict[str, Any]] = ()
    deletes: Sequence[dict[str, Any]] = ()


def _response_items(resp: Mapping[str, Any], table_name: str) -> list[Any]:
    found = (resp.get("Responses") or {}).get(table_name) or []
    if isinstance(found, Mapping):
        return list(found.get("Items") or [])
    return list(found)


class BatchOrchestrator:
    """Splits batch gets and writes into chunks under the store ceilings.

    Chunks are issued concurrently. Each chunk resubmits its own unprocessed
    remainder with capped exponential backoff until the remainder is empty or
    ``max_retries`` resubmissions have been spent.
    """

    def __init__(
        self,
        client: StoreClient,
        *,
        max_get: int = MAX_GET,
        max_write: int = MAX_WRITE,
        max_retries: int = 5,
        max_workers: int | None = None,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        if max_get <= 0 or max_write <= 0:
            raise ValidationError("batch ceilings must be > 0")
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")
        if max_workers is not None and max_workers <= 0:
            raise ValidationError("max_workers must be > 0")
        self._client = client
        self._max_get = max_get
        self._max_write = max_write
        self._max_retries = max_retries
        self._max_workers = max_workers
        self._sleep = sleep

    def get(self, requests: Sequence[BatchGetRequest]) -> dict[str, list[Any]]:
        options: dict[str, Mapping[str, Any]] = {}
        decoders: dict[str, ItemDecoder] = {}
        entries: list[tuple[str, dict[str, Any]]] = []
        for req in requests:
            if not req.table_name:
                raise ValidationError("table_name is required")
            options.setdefault(req.table_name, dict(req.options))
            decoders.setdefault(req.table_name, req.decode)
            entries.extend((req.table_name, key) for key in req.keys)

        out: dict[str, list[Any]] = {name: [] for name in options}
        if not entries:
            return out

        chunks: list[dict[str, Any]] = []
        for chunk in _chunked(entries, self._max_get):
            request_items: dict[str, Any] = {}
            for name, key in chunk:
                request_items.setdefault(name, dict(options[name], Keys=[]))["Keys"].append(key)
            chunks.append(request_items)

        LOG.debug("BatchGetItem: %d keys in %d chunk(s)", len(entries), len(chunks))
        for found in gather(self._get_chunk, chunks, max_workers=self._max_workers):
            for name, items in found.items():
                decode = decoders[name]
                out[name].extend(decode(item) for item in items)
        return out

    def _get_chunk(self, request_items: dict[str, Any]) -> dict[str, list[Any]]:
        found: dict[str, list[Any]] = {name: [] for name in request_items}
        pending = request_items
        attempts = 0

        while pending:
            resp = self._client.request("BatchGetItem", {"RequestItems": pending})
            for name in found:
                found[name].extend(_response_items(resp, name))

            pending = {
                name: remainder
                for name, remainder in (resp.get("UnprocessedKeys") or {}).items()
                if remainder and remainder.get("Keys")
            }
            if pending:
                unprocessed = sum(len(r["Keys"]) for r in pending.values())
                if attempts >= self._max_retries:
                    raise BatchRetryExceededError(operation="BatchGetItem", unprocessed_count=unprocessed)
                attempts += 1
                LOG.debug("BatchGetItem: resubmitting %d unprocessed key(s), attempt %d", unprocessed, attempts)
                if self._sleep is not None:
                    self._sleep(_backoff_seconds(attempts))
        return found

    def write(self, requests: Sequence[BatchWriteRequest]) -> None:
        entries: list[tuple[str, dict[str, Any]]] = []
        for req in requests:
            if not req.table_name:
                raise ValidationError("table_name is required")
            entries.extend((req.table_name, {"PutRequest": {"Item": item}}) for item in req.puts)
            entries.extend((req.table_name, {"DeleteRequest": {"Key": key}}) for key in req.deletes)

        if not entries:
            return

        chunks: list[dict[str, list[Any]]] = []
        for chunk in _chunked(entries, self._max_write):
            request_items: dict[str, list[Any]] = {}
            for name, op in chunk:
                request_items.setdefault(name, []).append(op)
            chunks.append(request_items)

        LOG.debug("BatchWriteItem: %d request(s) in %d chunk(s)", len(entries), len(chunks))
        gather(self._write_chunk, chunks, max_workers=self._max_workers)

    def _write_chunk(self, request_items: dict[str, list[Any]]) -> None:
        pending = request_items
        attempts = 0

        while pending:
            resp = self._client.request("BatchWriteItem", {"RequestItems": pending})
            pending = {name: ops for name, ops in (resp.get("UnprocessedItems") or {}).items() if ops}
            if pending:
                unprocessed = sum(len(ops) for ops in pending.values())
                if attempts >= self._max_retries:
                    raise BatchRetryExceededError(operation="BatchWriteItem", unprocessed_count=unprocessed)
                attempts += 1
                LOG.debug("BatchWriteItem: resubmitting %d unprocessed request(s), attempt %d", unprocessed, attempts)
                if self._sleep is not None:
                    self._sleep(_backoff_seconds(attempts))
