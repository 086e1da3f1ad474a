from __future__ import annotations

import pytest

from rhetique.llm.classifiers import (
    DEFAULT_CLASSIFIER,
    ErrorCategory,
    classifier_for,
    parse_retry_after,
)
from rhetique.llm.errors import ApiError, AuthError, TransportError


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Please try again in 2.5s.", 2.5),
        ("please Try Again In 450ms", 0.45),
        ("try again in 7m30s", None),
        ("no hint here", None),
    ],
)
def test_parse_retry_after(message: str, expected) -> None:
    assert parse_retry_after(message) == (pytest.approx(expected) if expected is not None else None)


def test_groq_daily_limit_is_not_retryable() -> None:
    classifier = classifier_for("groq")
    error = ApiError("Rate limit reached on tokens per day (TPD): Limit 100000", status_code=429)

    verdict = classifier.classify(error)

    assert verdict.category is ErrorCategory.DAILY_QUOTA
    message = classifier.daily_limit_message(error)
    assert message.startswith("Daily API limit reached. Rate limit reached on tokens per day")
    assert "Suggestions:\n1. Wait until tomorrow and try again" in message
    assert "4. Use a shorter transcript" in message


def test_minute_scale_wait_counts_as_daily_limit() -> None:
    verdict = DEFAULT_CLASSIFIER.classify(ApiError("Rate limit reached. Please try again in 12m4s."))
    assert verdict.category is ErrorCategory.DAILY_QUOTA


def test_short_window_rate_limit_carries_hint() -> None:
    verdict = classifier_for("groq").classify(ApiError("Rate limit reached. Please try again in 2.5s."))

    assert verdict.category is ErrorCategory.RATE_LIMIT
    assert verdict.retry_after == pytest.approx(2.5)


def test_status_code_alone_marks_rate_limit() -> None:
    verdict = classifier_for("openai").classify(ApiError("Slow down", status_code=429))

    assert verdict.category is ErrorCategory.RATE_LIMIT
    assert verdict.retry_after is None


def test_openai_quota_exhaustion_is_daily() -> None:
    error = ApiError("You exceeded your current quota, please check your plan and billing details.", status_code=429)
    verdict = classifier_for("openai").classify(error)

    assert verdict.category is ErrorCategory.DAILY_QUOTA
    assert "platform.openai.com/account/billing" in classifier_for("openai").daily_limit_message(error)


def test_gemini_resource_exhausted_is_rate_limit() -> None:
    verdict = classifier_for("gemini").classify(ApiError("All Gemini models failed: Resource has been exhausted"))
    assert verdict.category is ErrorCategory.RATE_LIMIT


@pytest.mark.parametrize(
    "error",
    [
        AuthError("Invalid API key. rate limit"),
        TransportError("connection reset"),
        ApiError("Internal server error", status_code=500),
        RuntimeError("Model overloaded"),
    ],
)
def test_other_failures_are_fatal(error: BaseException) -> None:
    assert DEFAULT_CLASSIFIER.classify(error).category is ErrorCategory.FATAL


def test_unknown_service_uses_default_classifier() -> None:
    assert classifier_for("mistral") is DEFAULT_CLASSIFIER
