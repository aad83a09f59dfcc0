from __future__ import annotations

from typing import Optional


class ShadowWatchError(Exception):
    """Base exception for all shadowwatch errors."""

    retryable: bool = False
    code: Optional[str] = None
    status: Optional[int] = None

    def user_message(self) -> str:
        return str(self)


class ConfigurationError(ShadowWatchError):
    """Missing credential or unknown provider. Never retried."""

    code = "configuration_error"


class TransientError(ShadowWatchError):
    """Timeout, throttling or upstream outage reported by a provider."""

    retryable = True
    code = "transient"

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    def user_message(self) -> str:
        return (
            "The LLM service is temporarily unavailable "
            f"({self}). Please retry later."
        )


class AuthenticationError(ShadowWatchError):
    """Credential rejected by the vendor (401/403)."""

    code = "authentication_failed"

    def __init__(self, message: str, *, status: Optional[int] = 401) -> None:
        super().__init__(message)
        self.status = status


class ValidationError(ShadowWatchError):
    """Model reply could not be extracted or did not match the schema."""

    code = "validation_error"

    def __init__(self, message: str, *, path: str = "", raw_text: str = "") -> None:
        super().__init__(message)
        self.path = path
        self.raw_text = raw_text

    def with_raw_text(self, raw_text: str) -> "ValidationError":
        self.raw_text = raw_text
        return self

    def user_message(self) -> str:
        return f"The model returned an unexpected response: {self}"


def describe_error(exc: BaseException, *, retryable: Optional[bool] = None) -> str:
    """Map an exception to the message shown to the user."""
    if isinstance(exc, ShadowWatchError):
        return exc.user_message()
    if retryable:
        return f"The LLM service is temporarily unavailable ({exc}). Please retry later."
    return str(exc) or exc.__class__.__name__
