"""Error taxonomy for the gateway.

Every failure the caller can observe is a ``GatewayError`` carrying a stable
``ErrorCode``. Errors are raised where the failure is detected and turned into
the JSON envelope only at the HTTP boundary (see ``server.py``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"
    UPSTREAM_EMPTY_BODY = "UPSTREAM_EMPTY_BODY"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GatewayError(Exception):
    """Base class for errors surfaced to gateway callers."""

    status_code: int = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        recoverable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }


class InvalidRequestError(GatewayError):
    """Missing or empty target url, or an undecodable request body."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_INPUT, message)


class PayloadTooLargeError(GatewayError):
    status_code = 413

    def __init__(self, limit: int) -> None:
        super().__init__(
            ErrorCode.PAYLOAD_TOO_LARGE,
            f"Request body too large (max {limit} bytes).",
        )


class ConfigurationError(GatewayError):
    """A required upstream setting (the token) is missing."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message)


class UpstreamError(GatewayError):
    """The rendering service answered with a failure, or could not be reached.

    ``upstream_status`` is ``None`` for transport-level failures.
    """

    status_code = 502

    def __init__(self, message: str, *, upstream_status: int | None = None, body: str = "") -> None:
        super().__init__(ErrorCode.UPSTREAM_FAILED, message, recoverable=True)
        self.upstream_status = upstream_status
        self.body = body


class EmptyBodyError(GatewayError):
    """The rendering service returned an empty document, even after a retry."""

    status_code = 502

    def __init__(self, url: str) -> None:
        super().__init__(
            ErrorCode.UPSTREAM_EMPTY_BODY,
            f"Render service returned an empty document for {url}.",
            recoverable=True,
        )
        self.url = url
