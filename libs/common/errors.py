"""Typed application errors shared by the store components.

Each error carries the HTTP status it maps to (``http_status``) so routers
never translate them by hand; see ``libs.common.error_handler``.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for domain errors."""

    http_status: int = 500
    code: str = "APP_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class NotFoundError(AppError):
    http_status = 404
    code = "NOT_FOUND"


class ValidationError(AppError):
    """Request or order data failed a precondition.

    ``fields`` lists the missing/invalid field names when known.
    """

    http_status = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        self.fields = fields or []
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.fields:
            data["fields"] = self.fields
        return data


class ConfigurationError(AppError):
    http_status = 500
    code = "CONFIGURATION_ERROR"


class SignatureVerificationError(AppError):
    http_status = 400
    code = "INVALID_SIGNATURE"


class ProviderError(AppError):
    """An outbound call to an external provider failed.

    ``status_code`` is the upstream HTTP status, or None when the request
    never got a response (timeouts, refused connections).
    """

    http_status = 502
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        endpoint: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["upstream_status"] = self.status_code
        data["endpoint"] = self.endpoint
        return data
