"""LLM tooling: backend adapters, error taxonomy and retry policy."""

from .classifiers import (
    CLASSIFIERS,
    DEFAULT_CLASSIFIER,
    Classification,
    ErrorCategory,
    ErrorClassifier,
    classifier_for,
    parse_retry_after,
)
from .errors import (
    ApiError,
    AuthError,
    ConfigurationError,
    DailyQuotaError,
    EngineBusyError,
    RateLimitError,
    RhetiqueError,
    StepExecutionError,
    TransportError,
)
from .providers import (
    DEFAULT_BACKENDS,
    BackendSettings,
    ChatBackend,
    GeminiBackend,
    LLMClient,
    OpenAICompatibleBackend,
    build_backends,
)
from .retry import RetryController

__all__ = [
    "CLASSIFIERS",
    "DEFAULT_CLASSIFIER",
    "Classification",
    "ErrorCategory",
    "ErrorClassifier",
    "classifier_for",
    "parse_retry_after",
    "RhetiqueError",
    "ConfigurationError",
    "ApiError",
    "AuthError",
    "DailyQuotaError",
    "RateLimitError",
    "TransportError",
    "StepExecutionError",
    "EngineBusyError",
    "DEFAULT_BACKENDS",
    "BackendSettings",
    "ChatBackend",
    "OpenAICompatibleBackend",
    "GeminiBackend",
    "LLMClient",
    "build_backends",
    "RetryController",
]
