"""Error types raised by the gateway.

Every error carries the HTTP status it maps to.  The API layer renders any
:class:`GatewayError` as ``{"status": false, "error": <message>}``.
"""

from __future__ import annotations

UNAUTHORIZED_MESSAGE = "Unauthorized, invalid or missing API key"
PROMPT_REQUIRED_MESSAGE = "Image prompt is required"
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class GatewayError(Exception):
    """Base class for failures that end a request with a JSON error body."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthorizationError(GatewayError):
    """Missing, malformed, or mismatched bearer token."""

    status_code = 401

    def __init__(self, message: str = UNAUTHORIZED_MESSAGE) -> None:
        super().__init__(message)


class PromptValidationError(GatewayError):
    """Request body has no usable prompt."""

    status_code = 400


class UpstreamError(GatewayError):
    """The remote model could not be reached or returned something unusable."""

    status_code = 500
