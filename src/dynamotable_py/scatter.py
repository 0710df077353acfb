from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any

from .errors import ValidationError
from .pagination import PaginatedReader

LOG = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16


def gather[A, R](fn: Callable[[A], R], args: Sequence[A], *, max_workers: int | None = None) -> list[R]:
    """Runs ``fn`` over ``args`` on a thread pool, results in argument order.

    At most ``max_workers`` (default ``DEFAULT_MAX_WORKERS``) calls run at once.
    The first failure observed is raised once every submitted call has
    finished; results of the other calls are discarded.
    """
    if not args:
        return []
    with ThreadPoolExecutor(max_workers=min(len(args), max_workers or DEFAULT_MAX_WORKERS)) as ex:
        futures = [ex.submit(fn, arg) for arg in args]
        done, _ = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in futures:
            err = fut.exception() if fut in done else None
            if err is not None:
                raise err
        return [fut.result() for fut in futures]


def is_segmented(payload: Mapping[str, Any]) -> bool:
    total = payload.get("TotalSegments")
    return total is not None and int(total) > 0 and payload.get("Segment") is None


class ScatterGatherScanner:
    """Runs one full paginated scan per segment and merges the segments."""

    def __init__(self, reader: PaginatedReader, *, max_workers: int | None = None) -> None:
        if max_workers is not None and max_workers <= 0:
            raise ValidationError("max_workers must be > 0")
        self._reader = reader
        self._max_workers = max_workers

    def scan(self, payload: Mapping[str, Any], operation: str = "Scan") -> list[Any] | int:
        total = int(payload.get("TotalSegments") or 0)
        if total <= 0:
            raise ValidationError("TotalSegments must be > 0")
        if payload.get("Segment") is not None:
            raise ValidationError("Segment must not be set for a scatter-gather scan")

        def scan_segment(segment: int) -> list[Any] | int:
            return self._reader.read(operation, dict(payload, Segment=segment, TotalSegments=total))

        LOG.debug("Scanning %d segments", total)
        results = gather(scan_segment, range(total), max_workers=self._max_workers)

        if payload.get("Select") == "COUNT":
            return sum(int(r) for r in results)  # type: ignore[arg-type]

        out: list[Any] = []
        for seg_items in results:
            out.extend(seg_items)  # type: ignore[arg-type]
        return out
