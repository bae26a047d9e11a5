"""
JSON message codec for the gRPC services.

Requests and responses travel as UTF-8 encoded JSON objects instead of
protobuf messages, so the services are registered with generic method
handlers and these functions as (de)serializers.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from ..errors import InvalidArgumentError


def decode_request(data: bytes) -> Dict[str, Any]:
    """Decode a request message.

    An empty message decodes to an empty request.

    Raises:
        InvalidArgumentError: If the payload is not a JSON object
    """
    if not data:
        return {}
    try:
        message = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidArgumentError("request is not valid JSON").caused_by(e) from e
    if not isinstance(message, dict):
        raise InvalidArgumentError("request must be a JSON object")
    return message


def encode_response(message: Any) -> bytes:
    return json.dumps(message, separators=(",", ":"), sort_keys=True).encode("utf-8")


# Client side counterparts
encode_request = encode_response


def decode_response(data: bytes) -> Any:
    return json.loads(data.decode("utf-8")) if data else {}
