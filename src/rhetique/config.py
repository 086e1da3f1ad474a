"""Dataclass-driven configuration for the rhetique package."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Mapping

from .paths import SessionPathConfig, resolve_output_path, resolve_session_path

__all__ = [
    "SUPPORTED_SERVICES",
    "SERVICE_API_KEY_ENVS",
    "LLMConfig",
    "RetryConfig",
    "PacingConfig",
    "RhetiqueConfig",
]

SUPPORTED_SERVICES: tuple[str, ...] = ("groq", "openai", "gemini")

SERVICE_API_KEY_ENVS: Mapping[str, tuple[str, ...]] = {
    "openai": ("OPENAI_API_KEY",),
    "groq": ("GROQ_API_KEY",),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


def _env_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:  # pragma: no cover - malformed value
        return default


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:  # pragma: no cover - malformed value
        return default


@dataclass(slots=True)
class LLMConfig:
    """Backend selection and credential resolution."""

    service: str = field(default_factory=lambda: os.getenv("RHETIQUE_SERVICE", "groq"))
    api_key_env: str | None = field(default_factory=lambda: os.getenv("RHETIQUE_API_KEY_ENV"))
    fallback_api_key_envs: tuple[str, ...] = ("RHETIQUE_API_KEY",)
    temperature: float | None = field(default_factory=lambda: _env_float("RHETIQUE_TEMPERATURE"))

    def api_key_envs(self, service: str | None = None) -> tuple[str, ...]:
        target = (service or self.service).lower()
        candidates: list[str] = []
        if self.api_key_env:
            candidates.append(self.api_key_env)
        candidates.extend(SERVICE_API_KEY_ENVS.get(target, ()))
        candidates.extend(self.fallback_api_key_envs)
        return tuple(candidates)

    def resolve_api_key(self, override: str | None = None, *, service: str | None = None) -> str | None:
        if override:
            return override
        env_candidates: Iterable[str] = self.api_key_envs(service)
        for name in env_candidates:
            value = os.getenv(name)
            if value:
                return value
        return None


@dataclass(slots=True)
class RetryConfig:
    """Bounded backoff applied to short-window rate limits."""

    max_attempts: int = field(default_factory=lambda: _env_int("RHETIQUE_MAX_ATTEMPTS", 3) or 3)
    backoff_base: float = 2.0
    safety_margin: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def backoff_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait after the 0-based ``attempt`` failed."""

        wait = retry_after if retry_after is not None else (2**attempt) * self.backoff_base
        return wait + self.safety_margin


@dataclass(slots=True)
class PacingConfig:
    """Fixed delays between steps to stay under steady-state provider limits."""

    default_delay: float = field(default_factory=lambda: _env_float("RHETIQUE_STEP_DELAY", 2.0) or 0.0)
    service_delays: dict[str, float] = field(default_factory=lambda: {"groq": 5.0})

    def delay_for(self, service: str) -> float:
        return self.service_delays.get(service.lower(), self.default_delay)


@dataclass(slots=True)
class RhetiqueConfig:
    """Primary configuration entry point."""

    paths: SessionPathConfig = field(default_factory=SessionPathConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)

    def with_paths(
        self,
        *,
        session_dir: Path | str | None = None,
        output_dir: Path | str | None = None,
    ) -> "RhetiqueConfig":
        new_paths = replace(
            self.paths,
            session_dir=resolve_session_path(session_dir or self.paths.session_dir, create=False),
            output_dir=resolve_output_path(output_dir or self.paths.output_dir, create=False),
        )
        return replace(self, paths=new_paths)

    @property
    def session_dir(self) -> Path:
        return resolve_session_path(self.paths.session_dir, create=self.paths.create_session)

    @property
    def output_dir(self) -> Path:
        return resolve_output_path(self.paths.output_dir, create=self.paths.create_output)
