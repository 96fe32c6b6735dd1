"""
WhatsApp Inbox Errors

Exception taxonomy shared by the services and the HTTP layer.
Every error carries the HTTP status and machine code it maps to.
"""

from typing import Any


class InboxError(Exception):
    """Base class for all engine errors."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(InboxError):
    """Malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class ConfigError(InboxError):
    """Account is missing provider credentials or configuration."""

    status_code = 400
    code = "CONFIG_ERROR"


class Unauthorized(InboxError):
    """Caller may not touch this resource (tenant mismatch or unknown id)."""

    status_code = 403
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class LicenseError(Unauthorized):
    """Caller's tenant is not licensed for the module."""

    code = "MODULE_NOT_LICENSED"

    def __init__(self, module_id: str, message: str | None = None):
        super().__init__(
            message or f"Module '{module_id}' is not licensed",
            {"module_id": module_id},
        )
        self.module_id = module_id


class NotFound(InboxError):
    status_code = 404
    code = "NOT_FOUND"


class NoActiveSession(InboxError):
    """No connected WhatsApp session can carry an outbound message."""

    status_code = 409
    code = "NO_ACTIVE_SESSION"

    def __init__(self, message: str = "No active WhatsApp session"):
        super().__init__(message)


class MissingContactNumber(InboxError):
    status_code = 422
    code = "MISSING_CONTACT_NUMBER"

    def __init__(self, message: str = "Contact has no WhatsApp number"):
        super().__init__(message)


class ProviderError(InboxError):
    """Error from the WhatsApp bridge provider."""

    status_code = 502
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message, details)
        # Upstream code (HTTP status or transport error name)
        self.provider_code = code
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.provider_code:
            body["provider_code"] = self.provider_code
        return body


class InternalError(InboxError):
    """Unexpected failure."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
