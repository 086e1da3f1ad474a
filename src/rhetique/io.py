"""Transcript loading utilities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = ["LoadedTranscript", "load_transcript"]

SUPPORTED_TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


@dataclass(slots=True)
class LoadedTranscript:
    """Container for a speech transcript and its metadata."""

    content: str
    source: Path
    metadata: dict[str, Any]


def load_transcript(source: Path | str, *, encoding: str = "utf-8") -> LoadedTranscript:
    """Read a plain-text or Markdown transcript."""

    source_path = Path(source).expanduser()
    if not source_path.exists():
        raise FileNotFoundError(f"Transcript not found: {source_path}")

    suffix = source_path.suffix.lower()
    if suffix not in SUPPORTED_TEXT_SUFFIXES:
        raise ValueError(f"Unsupported transcript format for {source_path}; use .txt or .md")

    text = source_path.read_text(encoding=encoding).strip()
    if not text:
        raise ValueError(f"Transcript is empty: {source_path}")

    metadata = {
        "kind": "markdown" if suffix != ".txt" else "text",
        "length": len(text),
        "words": len(text.split()),
        "path": str(source_path),
    }
    return LoadedTranscript(content=text, source=source_path, metadata=metadata)
