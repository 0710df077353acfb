from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import TransportError


def map_client_error(err: ClientError) -> TransportError:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    return TransportError(code=code or "UnknownError", message=message or str(err))
