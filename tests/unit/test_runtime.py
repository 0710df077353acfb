from __future__ import annotations

import pytest
from botocore.config import Config

from dynamotable_py import Boto3StoreClient
from dynamotable_py.mocks import FakeStoreClient
from dynamotable_py.runtime import (
    StoreCallMetric,
    create_boto3_config,
    create_store_client,
    instrument_store_client,
    is_lambda_environment,
)


class FakeSession:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    def client(self, service_name: str, **kwargs: object) -> object:
        self.calls.append((service_name, dict(kwargs)))
        return object()


def test_is_lambda_environment() -> None:
    assert is_lambda_environment({}) is False
    assert is_lambda_environment({"AWS_LAMBDA_FUNCTION_NAME": "fn"}) is True
    assert is_lambda_environment({"AWS_EXECUTION_ENV": "AWS_Lambda_python3.12"}) is True


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(connect_timeout=2.0, read_timeout=4.0, max_attempts=5)
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries == {"max_attempts": 5, "mode": "adaptive"}


def test_instrument_store_client_reports_every_call() -> None:
    metrics: list[StoreCallMetric] = []

    client = FakeStoreClient()
    client.expect("PutItem", response={})
    client.expect("GetItem", error=RuntimeError("boom"))
    wrapped = instrument_store_client(client, metrics.append)

    wrapped.request("PutItem", {"TableName": "t", "Item": {}})
    with pytest.raises(RuntimeError, match="boom"):
        wrapped.request("GetItem", {"TableName": "t", "Key": {}})

    assert [(m.operation, m.ok) for m in metrics] == [("PutItem", True), ("GetItem", False)]
    assert all(m.seconds >= 0 for m in metrics)


def test_create_store_client_uses_session(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)
    monkeypatch.delenv("AWS_EXECUTION_ENV", raising=False)
    sess = FakeSession()

    client = create_store_client(region="eu-west-1", session=sess, endpoint_url="http://localhost:8000")

    assert isinstance(client, Boto3StoreClient)
    assert sess.calls == [
        ("dynamodb", {"region_name": "eu-west-1", "config": None, "endpoint_url": "http://localhost:8000"})
    ]


def test_create_store_client_in_lambda_gets_short_timeouts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "fn")
    sess = FakeSession()

    create_store_client(session=sess)

    config = sess.calls[0][1]["config"]
    assert isinstance(config, Config)
    assert config.read_timeout == 3.0


def test_create_store_client_with_metrics() -> None:
    metrics: list[StoreCallMetric] = []
    client = create_store_client(session=FakeSession(), config=create_boto3_config(), metrics=metrics.append)

    assert not isinstance(client, Boto3StoreClient)
    assert hasattr(client, "request")
