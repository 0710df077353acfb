from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type Handler = Callable[[dict[str, Any]], Mapping[str, Any]]


def _mismatch(path: str, what: str) -> AssertionError:
    return AssertionError(f"{path}: {what}")


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    """Partial match: mappings may carry extra keys, sequences must line up."""
    if expected is ANY:
        return

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            raise _mismatch(path, f"expected a map, got {type(actual).__name__}")
        missing = [name for name in expected if name not in actual]
        if missing:
            raise _mismatch(path, f"missing key {missing[0]!r}")
        for name, want in expected.items():
            _assert_match(want, actual[name], path=f"{path}.{name}")
    elif isinstance(expected, (list, tuple)):
        if not isinstance(actual, (list, tuple)):
            raise _mismatch(path, f"expected a list, got {type(actual).__name__}")
        if len(actual) != len(expected):
            raise _mismatch(path, f"expected {len(expected)} items, got {len(actual)}")
        for pos, want in enumerate(expected):
            _assert_match(want, actual[pos], path=f"{path}[{pos}]")
    elif expected != actual:
        raise _mismatch(path, f"expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    operation: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeStoreClient:
    """In-memory StoreClient for unit tests.

    ``expect`` queues ordered calls, matched partially against the payload.
    ``on`` registers a handler for every call of one operation, for fan-out
    paths (segments, batch chunks) where call order is not deterministic.
    Handlers are consulted before the expectation queue.
    """

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self._handlers: dict[str, Handler] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        operation: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(ExpectedCall(operation=operation, expected=expected, response=response, error=error))

    def on(self, operation: str, handler: Handler) -> None:
        self._handlers[operation] = handler

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def calls_for(self, operation: str) -> list[dict[str, Any]]:
        with self._lock:
            return [payload for op, payload in self.calls if op == operation]

    def request(self, operation: str, payload: dict[str, Any]) -> Mapping[str, Any]:
        with self._lock:
            self.calls.append((operation, dict(payload)))
            handler = self._handlers.get(operation)
            call = None
            if handler is None:
                if not self._expected:
                    raise AssertionError(f"unexpected call: {operation}")
                call = self._expected.pop(0)

        if handler is not None:
            return dict(handler(payload))

        assert call is not None
        if call.operation != operation:
            raise AssertionError(f"expected {call.operation}, got {operation}")

        if callable(call.expected):
            call.expected(payload)
        elif call.expected is not None:
            _assert_match(dict(call.expected), payload, path=operation)

        if call.error is not None:
            raise call.error

        return dict(call.response or {})
