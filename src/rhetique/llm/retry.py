"""Bounded retry with backoff around a single adapter call.

Only short-window throttling is retried. A daily quota cannot be waited out
in seconds, so it fails on the first attempt with remediation guidance, and
every other error propagates untouched.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Optional

from ..config import RetryConfig
from .classifiers import ErrorCategory, ErrorClassifier, classifier_for
from .errors import ApiError, DailyQuotaError, RateLimitError

logger = logging.getLogger(__name__)

__all__ = ["Invoker", "RetryController"]

Invoker = Callable[[str, str, str, str], str]
Sleeper = Callable[[float], None]


class RetryController:
    """Wraps an ``invoke(service, credentials, system_prompt, user_message)`` callable."""

    def __init__(
        self,
        invoke: Invoker,
        *,
        config: Optional[RetryConfig] = None,
        classifiers: Optional[Mapping[str, ErrorClassifier]] = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._invoke = invoke
        self.config = config or RetryConfig()
        self._classifiers = dict(classifiers or {})
        self._sleep = sleep

    def classifier(self, service: str) -> ErrorClassifier:
        return self._classifiers.get(service.lower(), None) or classifier_for(service)

    def call_with_retry(
        self,
        service: str,
        credentials: str,
        system_prompt: str,
        user_message: str,
        max_attempts: Optional[int] = None,
    ) -> str:
        attempts = max_attempts if max_attempts is not None else self.config.max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        classifier = self.classifier(service)

        for attempt in range(attempts):
            try:
                return self._invoke(service, credentials, system_prompt, user_message)
            except Exception as exc:
                verdict = classifier.classify(exc)

                if verdict.category is ErrorCategory.DAILY_QUOTA:
                    logger.error("Daily limit reported by %s; not retrying", service)
                    raise DailyQuotaError(
                        classifier.daily_limit_message(exc),
                        service=service,
                        status_code=getattr(exc, "status_code", None),
                    ) from exc

                if verdict.category is not ErrorCategory.RATE_LIMIT:
                    raise

                if attempt >= attempts - 1:
                    logger.error("Rate limit persisted after %d attempts against %s", attempts, service)
                    raise RateLimitError(
                        str(getattr(exc, "message", None) or exc),
                        service=service,
                        status_code=exc.status_code if isinstance(exc, ApiError) else None,
                        retry_after=verdict.retry_after,
                    ) from exc

                delay = self.config.backoff_delay(attempt, verdict.retry_after)
                logger.warning(
                    "Rate limited by %s. Waiting %.1fs before retry %d/%d",
                    service,
                    delay,
                    attempt + 1,
                    attempts,
                )
                self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover
