"""
Error types for the system model service.

Every failure surfaced by a manager or handler is one of four kinds:
- InvalidArgumentError: malformed or missing request fields
- NotFoundError: referenced entity, parent or association absent
- AlreadyExistsError: duplicate create
- InternalError: unexpected store failure or serialization fault

Invariants:
    - All errors inherit from SystemModelError
    - `code` is stable and maps one-to-one onto a gRPC status code
    - Messages name the entity kind; offending identifiers go into `params`

How to change safely:
    - Do not add kinds without extending the gRPC status mapping in
      api/grpc_server.py
    - Keep messages free of payload contents (they end up in logs)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SystemModelError(Exception):
    """Base exception for all system model errors.

    Attributes:
        message: Human readable message, usually the entity kind
        code: Error code for programmatic handling
        params: Identifiers involved in the failure
        cause: Underlying exception, if any
    """

    code = "UNKNOWN"

    def __init__(
        self,
        message: str,
        params: Optional[List[Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.params: List[str] = [str(p) for p in params or []]
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_params(self, *params: Any) -> SystemModelError:
        """Attach identifiers to the error and return it."""
        self.params.extend(str(p) for p in params)
        return self

    def caused_by(self, cause: BaseException) -> SystemModelError:
        """Record the underlying exception and return the error."""
        self.cause = cause
        self.__cause__ = cause
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for responses and structured logs."""
        result: Dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
            "params": list(self.params),
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        if self.params:
            return f"{self.message} [{', '.join(self.params)}]"
        return self.message


class InvalidArgumentError(SystemModelError):
    """Request is malformed or misses a required field.

    Raised before any store is touched.
    """

    code = "INVALID_ARGUMENT"


class NotFoundError(SystemModelError):
    """A referenced entity, parent or association does not exist."""

    code = "NOT_FOUND"


class AlreadyExistsError(SystemModelError):
    """An entity or association with the same key already exists."""

    code = "ALREADY_EXISTS"


class InternalError(SystemModelError):
    """Unexpected failure of a store or of the service itself."""

    code = "INTERNAL"
