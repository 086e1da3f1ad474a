"""Path helpers for session state and exported reports."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "DEFAULT_SESSION_ROOT",
    "DEFAULT_OUTPUT_ROOT",
    "SessionPathConfig",
    "resolve_session_path",
    "resolve_output_path",
]

DEFAULT_SESSION_ROOT = Path(os.getenv("RHETIQUE_SESSION_DIR", ".rhetique")) / "session"
DEFAULT_OUTPUT_ROOT = Path(os.getenv("RHETIQUE_OUTPUT_DIR", "outputs")) / "reports"


def _normalise(path: Path | str) -> Path:
    return Path(path).expanduser()


def resolve_session_path(path: Path | str | None = None, *, create: bool = True) -> Path:
    candidate = _normalise(path or DEFAULT_SESSION_ROOT)
    if create:
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


def resolve_output_path(path: Path | str | None = None, *, create: bool = True) -> Path:
    candidate = _normalise(path or DEFAULT_OUTPUT_ROOT)
    if create:
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


@dataclass(slots=True)
class SessionPathConfig:
    """Where session snapshots and reports live."""

    session_dir: Path = DEFAULT_SESSION_ROOT
    output_dir: Path = DEFAULT_OUTPUT_ROOT
    create_session: bool = True
    create_output: bool = True
