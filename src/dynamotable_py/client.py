from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from botocore import xform_name
from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .codec import b64decode

LOG = logging.getLogger(__name__)


class StoreClient(Protocol):
    def request(self, operation: str, payload: dict[str, Any]) -> Mapping[str, Any]: ...


def _outgoing(value: Any) -> Any:
    if isinstance(value, Mapping):
        if len(value) == 1:
            ((tag, inner),) = value.items()
            if tag == "B" and isinstance(inner, str):
                return {"B": b64decode(inner)}
            if tag == "BS" and isinstance(inner, list) and all(isinstance(v, str) for v in inner):
                return {"BS": [b64decode(v) for v in inner]}
        return {k: _outgoing(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_outgoing(v) for v in value]
    return value


def _incoming(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, Mapping):
        return {k: _incoming(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_incoming(v) for v in value]
    return value


class Boto3StoreClient:
    """StoreClient over a boto3 ``dynamodb`` client.

    Binary payloads travel as base64 text inside this package; boto3 wants raw
    bytes, so ``B``/``BS`` attributes are converted at this boundary in both
    directions.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    def request(self, operation: str, payload: dict[str, Any]) -> Mapping[str, Any]:
        LOG.debug("Calling %s with arguments %s", operation, payload)
        method = getattr(self._client, xform_name(operation))
        try:
            resp = method(**_outgoing(payload))
        except ClientError as err:
            raise map_client_error(err) from err
        return _incoming(resp)
