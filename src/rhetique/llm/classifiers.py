"""Per-backend classification of backend failures into retry categories.

Providers report throttling in free text that changes between API versions,
so each backend owns its own patterns instead of sharing one global set.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Mapping, Pattern

from .errors import ApiError, AuthError, ConfigurationError, TransportError

__all__ = [
    "ErrorCategory",
    "Classification",
    "ErrorClassifier",
    "DEFAULT_CLASSIFIER",
    "CLASSIFIERS",
    "classifier_for",
    "parse_retry_after",
]

# "try again in 2.5s" / "try again in 450ms"; minutes are handled as daily limits
RETRY_AFTER_PATTERN = re.compile(r"try again in (\d+(?:\.\d+)?)(ms|s)\b", re.IGNORECASE)
MINUTE_WAIT_PATTERN = re.compile(r"try again in \d+(?:\.\d+)?m(?!s)", re.IGNORECASE)


class ErrorCategory(str, enum.Enum):
    DAILY_QUOTA = "daily_quota"
    RATE_LIMIT = "rate_limit"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class Classification:
    category: ErrorCategory
    retry_after: float | None = None


def parse_retry_after(message: str) -> float | None:
    """Return the server-suggested wait in seconds, if the message embeds one."""

    match = RETRY_AFTER_PATTERN.search(message or "")
    if match is None:
        return None
    value = float(match.group(1))
    return value / 1000.0 if match.group(2).lower() == "ms" else value


def _compile(patterns: tuple[str, ...]) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


@dataclass(frozen=True)
class ErrorClassifier:
    """Decides whether a backend failure is worth waiting out."""

    daily_patterns: tuple[Pattern[str], ...] = field(
        default_factory=lambda: _compile((r"tokens per day", r"requests per day", MINUTE_WAIT_PATTERN.pattern))
    )
    rate_limit_patterns: tuple[Pattern[str], ...] = field(
        default_factory=lambda: _compile((r"rate limit", r"\b429\b", r"too many requests"))
    )
    rate_limit_statuses: frozenset[int] = frozenset({429})
    remediation: tuple[str, ...] = (
        "Wait until tomorrow and try again",
        "Switch to a different API provider",
        "Upgrade your account tier",
        "Use a shorter transcript to reduce token usage",
    )

    def classify(self, error: BaseException) -> Classification:
        if isinstance(error, (AuthError, ConfigurationError, TransportError)):
            return Classification(ErrorCategory.FATAL)
        message = str(getattr(error, "message", None) or error)
        if any(pattern.search(message) for pattern in self.daily_patterns):
            return Classification(ErrorCategory.DAILY_QUOTA)

        retry_after = parse_retry_after(message)
        status = error.status_code if isinstance(error, ApiError) else None
        if (
            retry_after is not None
            or status in self.rate_limit_statuses
            or any(pattern.search(message) for pattern in self.rate_limit_patterns)
        ):
            return Classification(ErrorCategory.RATE_LIMIT, retry_after=retry_after)
        return Classification(ErrorCategory.FATAL)

    def daily_limit_message(self, error: BaseException) -> str:
        message = str(getattr(error, "message", None) or error)
        steps = "\n".join(f"{index}. {line}" for index, line in enumerate(self.remediation, start=1))
        return f"Daily API limit reached. {message}\n\nSuggestions:\n{steps}"


DEFAULT_CLASSIFIER = ErrorClassifier()

CLASSIFIERS: Mapping[str, ErrorClassifier] = {
    "groq": ErrorClassifier(
        remediation=(
            "Wait until tomorrow and try again",
            "Switch to a different API provider (Gemini or OpenAI)",
            "Upgrade your Groq account tier",
            "Use a shorter transcript to reduce token usage",
        ),
    ),
    # OpenAI reports exhausted credit as a 429 mentioning quota or billing
    "openai": ErrorClassifier(
        daily_patterns=_compile(
            (r"tokens per day", r"requests per day", MINUTE_WAIT_PATTERN.pattern, r"quota", r"billing")
        ),
        remediation=(
            "Add credits: https://platform.openai.com/account/billing",
            "Switch to a different API provider (Gemini or Groq)",
            "Wait for your usage limit to reset",
            "Use a shorter transcript to reduce token usage",
        ),
    ),
    "gemini": ErrorClassifier(
        daily_patterns=_compile((r"per day", r"PerDay", MINUTE_WAIT_PATTERN.pattern)),
        rate_limit_patterns=_compile(
            (r"rate limit", r"\b429\b", r"too many requests", r"resource has been exhausted")
        ),
        remediation=(
            "Wait until tomorrow and try again",
            "Switch to a different API provider (Groq or OpenAI)",
            "Enable billing on your Google AI Studio project",
            "Use a shorter transcript to reduce token usage",
        ),
    ),
}


def classifier_for(service: str) -> ErrorClassifier:
    return CLASSIFIERS.get((service or "").lower(), DEFAULT_CLASSIFIER)
