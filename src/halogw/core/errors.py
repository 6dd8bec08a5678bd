"""Structured exceptions shared by every layer of the gateway.

Every failure that reaches the HTTP boundary is a ``GatewayError``. Anything
else is wrapped into one before it leaves the service.

Exception hierarchy:
    GatewayError (base, 500)
    ├── InvalidRequestError - malformed body, schema violations (400)
    │   ├── UnknownTaskProfileError - task_profile not in the table (400)
    │   └── AttachmentError - bad MIME type, oversize payload (400)
    ├── CapabilityError - model lacks a requested feature (400)
    ├── ConfigurationError - provider credentials missing (500)
    └── ProviderError - backend failure, carries provider_error
        └── AuthenticationError - credential/token acquisition failed
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any


class GatewayError(Exception):
    """Base error carrying an HTTP status and a machine-readable code."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        provider_error: dict[str, Any] | None = None,
        request_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.provider_error = provider_error
        self.request_id = request_id

    def to_response(self, request_id: str | None = None) -> dict[str, Any]:
        """Render the error envelope returned to callers."""
        error: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.provider_error:
            error["provider_error"] = self.provider_error
        error["request_id"] = request_id or self.request_id or f"req_{uuid.uuid4().hex}"
        error["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {"error": error}

    def __str__(self) -> str:
        return f"{type(self).__name__} [{self.error_code}]: {self.message} (Status: {self.status_code})"


class InvalidRequestError(GatewayError):
    status_code = 400
    error_code = "INVALID_PARAMETERS"


class UnknownTaskProfileError(InvalidRequestError):
    error_code = "UNKNOWN_TASK_PROFILE"


class AttachmentError(InvalidRequestError):
    error_code = "INVALID_ATTACHMENT"


class CapabilityError(GatewayError):
    status_code = 400
    error_code = "CAPABILITY_NOT_SUPPORTED"


class ConfigurationError(GatewayError):
    """Operator error: the selected provider has no usable credentials."""

    status_code = 500
    error_code = "PROVIDER_CONFIG_ERROR"


class ProviderError(GatewayError):
    """A backend call failed. ``provider_error`` holds the backend payload."""

    status_code = 500
    error_code = "PROVIDER_ERROR"


class AuthenticationError(ProviderError):
    error_code = "PROVIDER_AUTHENTICATION_FAILED"
