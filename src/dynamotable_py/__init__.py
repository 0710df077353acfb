from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .codec import (
    AttributeCodec,
    AttributeConverter,
    Custom,
    Derived,
    FieldMapping,
    Hint,
    Primitive,
    parse_hint,
)
from .errors import (
    BatchRetryExceededError,
    DynamoTableError,
    EncodingError,
    PageLimitExceededError,
    TransportError,
    UnknownWireTypeError,
    ValidationError,
)
from .model import IndexSpec, KeySpec, Projection, gsi, lsi
from .query import Page

if TYPE_CHECKING:
    from .batch import MAX_GET, MAX_WRITE, BatchGetRequest, BatchOrchestrator, BatchWriteRequest
    from .client import Boto3StoreClient, StoreClient
    from .runtime import (
        StoreCallMetric,
        create_boto3_config,
        create_store_client,
        instrument_store_client,
        is_lambda_environment,
    )
    from .schema import build_create_table_request, build_update_table_request
    from .table import Table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name in {"MAX_GET", "MAX_WRITE", "BatchGetRequest", "BatchOrchestrator", "BatchWriteRequest"}:
        from . import batch

        return getattr(batch, name)
    if name in {"Boto3StoreClient", "StoreClient"}:
        from . import client

        return getattr(client, name)
    if name in {"build_create_table_request", "build_update_table_request"}:
        from . import schema

        return getattr(schema, name)
    if name in {
        "StoreCallMetric",
        "create_boto3_config",
        "create_store_client",
        "instrument_store_client",
        "is_lambda_environment",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeCodec",
    "AttributeConverter",
    "BatchGetRequest",
    "BatchOrchestrator",
    "BatchRetryExceededError",
    "BatchWriteRequest",
    "Boto3StoreClient",
    "build_create_table_request",
    "build_update_table_request",
    "create_boto3_config",
    "create_store_client",
    "Custom",
    "Derived",
    "DynamoTableError",
    "EncodingError",
    "FieldMapping",
    "gsi",
    "Hint",
    "IndexSpec",
    "instrument_store_client",
    "is_lambda_environment",
    "KeySpec",
    "lsi",
    "MAX_GET",
    "MAX_WRITE",
    "Page",
    "PageLimitExceededError",
    "parse_hint",
    "Primitive",
    "Projection",
    "StoreCallMetric",
    "StoreClient",
    "Table",
    "TransportError",
    "UnknownWireTypeError",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
