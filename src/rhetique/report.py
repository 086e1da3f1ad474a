"""Render completed analysis results as Markdown or JSON documents."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional, Sequence

from .analysis.models import AnalysisResult

__all__ = ["REPORT_TITLE", "ReportFormat", "render_markdown_report", "build_report_payload", "write_report"]

REPORT_TITLE = "Rhetorical Intelligence Report"
REPORT_EDITION = "Linguistic Expert Edition"

ReportFormat = Literal["markdown", "json"]


def render_markdown_report(
    orator_name: str,
    transcript: str,
    results: Sequence[AnalysisResult],
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    """Serialise the ordered results into one Markdown document."""

    generated = generated_at or datetime.now(timezone.utc)
    lines: list[str] = [
        f"# {REPORT_TITLE}",
        "",
        f"_{REPORT_EDITION}_",
        "",
        f"- Orator: {orator_name or 'Unknown'}",
        f"- Generated: {generated.date().isoformat()}",
        f"- Sections: {len(results)}",
        "",
    ]

    if transcript.strip():
        lines.append("## Speech Transcript")
        lines.append("")
        lines.extend(f"> {line}" if line.strip() else ">" for line in transcript.strip().splitlines())
        lines.append("")

    for index, result in enumerate(results, start=1):
        lines.append(f"## {index}. {result.title}")
        lines.append("")
        lines.append(result.content.strip())
        lines.append("")

    return "\n".join(line.rstrip() for line in lines).strip() + "\n"


def build_report_payload(
    orator_name: str,
    transcript: str,
    results: Sequence[AnalysisResult],
    *,
    generated_at: Optional[datetime] = None,
) -> dict[str, Any]:
    generated = generated_at or datetime.now(timezone.utc)
    return {
        "title": REPORT_TITLE,
        "orator": orator_name,
        "generated_at": generated.isoformat(timespec="seconds"),
        "transcript": transcript,
        "results": [result.model_dump(mode="json") for result in results],
    }


def write_report(
    path: Path | str,
    orator_name: str,
    transcript: str,
    results: Sequence[AnalysisResult],
    *,
    fmt: ReportFormat = "markdown",
    generated_at: Optional[datetime] = None,
) -> Path:
    """Write a report to ``path``; partial result sequences are accepted."""

    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "json":
        payload = build_report_payload(orator_name, transcript, results, generated_at=generated_at)
        target.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    elif fmt == "markdown":
        target.write_text(
            render_markdown_report(orator_name, transcript, results, generated_at=generated_at),
            encoding="utf-8",
        )
    else:
        raise ValueError(f"Unsupported report format: {fmt!r}")
    return target
