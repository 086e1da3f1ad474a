"""Error taxonomy shared by the LLM adapter, retry controller and engine."""

from __future__ import annotations

from typing import Optional

__all__ = [
    "RhetiqueError",
    "ConfigurationError",
    "ApiError",
    "AuthError",
    "DailyQuotaError",
    "RateLimitError",
    "TransportError",
    "StepExecutionError",
    "EngineBusyError",
]


class RhetiqueError(RuntimeError):
    """Base error raised by the rhetique package."""


class ConfigurationError(RhetiqueError):
    """Raised for unknown backends or missing credentials. Never retried."""


class ApiError(RhetiqueError):
    """A backend call failed; carries the backend's own status and message."""

    def __init__(
        self,
        message: str,
        *,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code


class AuthError(ApiError):
    """The backend rejected the supplied credential."""


class DailyQuotaError(ApiError):
    """A long-window (per-day) quota is exhausted; waiting seconds will not help."""


class RateLimitError(ApiError):
    """Short-window throttling, recoverable by waiting."""

    def __init__(
        self,
        message: str,
        *,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message, service=service, status_code=status_code)
        self.retry_after = retry_after


class TransportError(ApiError):
    """The request never produced a backend response (connection, timeout)."""


class StepExecutionError(RhetiqueError):
    """Wraps a failure with the title of the analysis step that produced it."""

    def __init__(self, step_title: str, cause: BaseException) -> None:
        self.step_title = step_title
        self.cause = cause
        super().__init__(f"Failed at {step_title}: {_describe(cause)}")


class EngineBusyError(RhetiqueError):
    """Raised when a run is requested while another run is still loading."""


def _describe(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc)
