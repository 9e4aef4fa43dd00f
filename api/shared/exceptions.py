"""Shared exceptions for the Fixie support chat API.

Each exception carries the HTTP status it maps to and a generic message that is
safe to show to callers; ``message`` and ``details`` stay in server logs.
"""
from typing import Any, Dict, Optional


class FixieException(Exception):
    """Base exception for the support chat backend."""

    status_code: int = 500
    public_message: str = "Sorry, I encountered an error. Please try again."

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FixieException):
    """Raised when a request body is missing required fields."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        # Validation messages describe the caller's own input
        self.public_message = message


class MethodNotAllowedError(FixieException):
    status_code = 405
    public_message = "Method not allowed"

    def __init__(self, method: str):
        super().__init__(
            f"Method {method} not allowed", "METHOD_NOT_ALLOWED", {"method": method}
        )


class AuthError(FixieException):
    """Raised when the identity token is absent or rejected."""

    status_code = 401
    public_message = "Authentication failed. Please log in again."

    MISSING = "missing"
    INVALID_OR_EXPIRED = "invalid_or_expired"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(
            message or f"Identity token {reason.replace('_', ' ')}",
            "AUTH_FAILED",
            {"reason": reason},
        )


class NotFoundError(FixieException):
    """Raised when a resource is not found."""

    status_code = 404
    public_message = "Not found"

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(
            message, "NOT_FOUND", {"resource": resource, "identifier": identifier}
        )
        self.public_message = f"{resource} not found"


class StoreError(FixieException):
    """Raised when a document store read or write fails."""

    status_code = 500
    public_message = "Failed to access conversation storage."

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORE_ERROR", details)


class ExternalServiceError(FixieException):
    """Raised when external service calls fail."""

    status_code = 502
    public_message = "An upstream service is unavailable. Please try again."

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
    ):
        full_message = f"{service} service error: {message}"
        super().__init__(full_message, error_code, details)


class IdentityServiceError(ExternalServiceError):
    """Raised when the identity service cannot be reached or fails server-side."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(
            "identity", message, {"status": status}, error_code="IDENTITY_SERVICE_ERROR"
        )
        self.status = status


class ProviderError(ExternalServiceError):
    """Raised when the completion provider rejects or fails a request."""

    public_message = "The assistant is temporarily unavailable. Please try again."

    EMPTY_RESPONSE = "empty_response"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(
            "completion",
            message,
            {"status": status, "reason": reason},
            error_code="PROVIDER_ERROR",
        )
        self.status = status
        self.reason = reason


class EmptyCompletionError(ProviderError):
    """Raised when the provider answers without any generated text."""

    def __init__(self, model: str):
        super().__init__(
            f"Model '{model}' returned no generated text",
            reason=ProviderError.EMPTY_RESPONSE,
        )


class ProviderTimeoutError(FixieException, TimeoutError):
    """Raised when the provider call exceeds its time budget."""

    status_code = 504
    public_message = "The assistant took too long to respond. Please try again."

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Completion request exceeded {timeout_seconds:g}s",
            "PROVIDER_TIMEOUT",
            {"timeout_seconds": timeout_seconds},
        )


class ClientDisconnectedError(FixieException):
    """Raised when the caller drops the connection before the turn finishes."""

    status_code = 499
    public_message = "Client closed request"

    def __init__(self, path: str):
        super().__init__(f"Client disconnected from {path}", "CLIENT_DISCONNECTED", {"path": path})
