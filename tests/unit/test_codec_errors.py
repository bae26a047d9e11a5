"""
Unit tests for the JSON message codec and the error types.

Tests cover:
- Request decoding and rejection of malformed payloads
- Stable response encoding
- Error parameters, causes and string form
"""

import pytest

from catalog.system_model.api.codec import decode_request, decode_response, encode_response
from catalog.system_model.errors import (
    AlreadyExistsError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    SystemModelError,
)


class TestCodec:
    """Tests for the JSON codec."""

    def test_empty_request(self):
        assert decode_request(b"") == {}

    def test_decode_object(self):
        assert decode_request(b'{"organization_id": "o-1"}') == {"organization_id": "o-1"}

    @pytest.mark.parametrize("payload", [b"{not json", b"\xff\xfe", b"[1, 2]", b'"text"'])
    def test_rejects_non_objects(self, payload):
        with pytest.raises(InvalidArgumentError):
            decode_request(payload)

    def test_encoding_is_stable(self):
        first = encode_response({"b": 1, "a": [1, 2]})
        second = encode_response({"a": [1, 2], "b": 1})

        assert first == second == b'{"a":[1,2],"b":1}'

    def test_decode_response(self):
        assert decode_response(encode_response({"success": True})) == {"success": True}
        assert decode_response(b"") == {}


class TestErrors:
    """Tests for SystemModelError and its kinds."""

    @pytest.mark.parametrize(
        "error_type,code",
        [
            (InvalidArgumentError, "INVALID_ARGUMENT"),
            (NotFoundError, "NOT_FOUND"),
            (AlreadyExistsError, "ALREADY_EXISTS"),
            (InternalError, "INTERNAL"),
        ],
    )
    def test_codes(self, error_type, code):
        error = error_type("node")

        assert error.code == code
        assert isinstance(error, SystemModelError)

    def test_params_in_string_form(self):
        error = NotFoundError("node").with_params("org-1", 7)

        assert error.params == ["org-1", "7"]
        assert str(error) == "node [org-1, 7]"

    def test_string_without_params(self):
        assert str(AlreadyExistsError("organization name")) == "organization name"

    def test_to_dict(self):
        cause = OSError("disk full")
        error = InternalError("catalog database failure").caused_by(cause)

        assert error.__cause__ is cause
        assert error.to_dict() == {
            "error_code": "INTERNAL",
            "message": "catalog database failure",
            "params": [],
            "cause": "disk full",
        }
