"""
Core domain exceptions.

Cancellation, provider failures and invalid controller operations. The
controller renders these into system messages; cancellation is never shown.
"""

from typing import Any


class CoreError(Exception):
    """Base exception for all core errors."""

    pass


class NotFoundError(CoreError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class InvalidOperationError(CoreError):
    """Raised when an operation cannot be performed in the current state."""

    pass


class RequestAbortedError(CoreError):
    """Raised by a model client when the active request was interrupted."""

    name = "AbortError"

    def __init__(self, message: str = "Request was aborted"):
        super().__init__(message)


class ProviderAPIError(CoreError):
    """
    Error returned by the completion provider.

    Carries the HTTP status and the decoded response body, which for
    OpenAI-compatible providers looks like
    ``{"error": {"message": ..., "code": ...}}``.
    """

    def __init__(self, status: int | None, body: Any = None, message: str | None = None):
        self.status = status
        self.body = body
        super().__init__(message or self.error_message or f"Provider returned status {status}")

    @property
    def _error(self) -> dict[str, Any]:
        if isinstance(self.body, dict) and isinstance(self.body.get("error"), dict):
            return self.body["error"]
        return {}

    @property
    def error_message(self) -> str | None:
        return self._error.get("message")

    @property
    def error_code(self) -> str | None:
        return self._error.get("code")


def is_cancellation(error: BaseException) -> bool:
    """True when ``error`` is the cancellation signal rather than a failure."""
    return isinstance(error, RequestAbortedError) or getattr(error, "name", None) == RequestAbortedError.name
