from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .client import Boto3StoreClient, StoreClient


@dataclass(frozen=True)
class StoreCallMetric:
    operation: str
    seconds: float
    ok: bool


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _InstrumentedStoreClient:
    def __init__(self, client: StoreClient, on_call: Callable[[StoreCallMetric], None]) -> None:
        self._client = client
        self._on_call = on_call

    def request(self, operation: str, payload: dict[str, Any]) -> Mapping[str, Any]:
        start = time.monotonic()
        try:
            out = self._client.request(operation, payload)
        except Exception:
            self._on_call(StoreCallMetric(operation=operation, seconds=time.monotonic() - start, ok=False))
            raise

        self._on_call(StoreCallMetric(operation=operation, seconds=time.monotonic() - start, ok=True))
        return out


def instrument_store_client(client: StoreClient, on_call: Callable[[StoreCallMetric], None]) -> StoreClient:
    return _InstrumentedStoreClient(client, on_call)


def create_store_client(
    *,
    region: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    endpoint_url: str | None = None,
    metrics: Callable[[StoreCallMetric], None] | None = None,
) -> StoreClient:
    """Builds a boto3-backed StoreClient.

    Inside Lambda the short-timeout adaptive-retry config is used unless one
    is passed explicitly.
    """
    if config is None and is_lambda_environment():
        config = create_boto3_config()

    sess = session or boto3.session.Session(region_name=region)
    raw = cast(Any, sess).client("dynamodb", region_name=region, config=config, endpoint_url=endpoint_url)

    client: StoreClient = Boto3StoreClient(raw)
    if metrics is not None:
        client = instrument_store_client(client, metrics)
    return client
