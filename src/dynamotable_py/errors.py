from __future__ import annotations


class DynamoTableError(Exception):
    pass


class ValidationError(DynamoTableError):
    pass


class EncodingError(DynamoTableError):
    pass


class UnknownWireTypeError(DynamoTableError):
    def __init__(self, attr: object) -> None:
        super().__init__(f"unknown wire type: {attr!r}")
        self.attr = attr


class BatchRetryExceededError(DynamoTableError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class PageLimitExceededError(DynamoTableError):
    def __init__(self, *, operation: str, pages: int) -> None:
        super().__init__(f"{operation}: page limit exceeded (pages={pages})")
        self.operation = operation
        self.pages = pages


class TransportError(DynamoTableError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
