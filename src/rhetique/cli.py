"""Command line interface for the rhetique analysis workflow."""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from pathlib import Path
from typing import Callable, Sequence

from dotenv import load_dotenv

from .analysis import (
    ANALYSIS_STEPS,
    AnalysisStep,
    JsonFileStateStore,
    OrchestrationView,
    SessionPersistence,
    build_engine,
)
from .config import SUPPORTED_SERVICES, RhetiqueConfig
from .io import load_transcript
from .llm.errors import RhetiqueError
from .report import write_report

__all__ = ["main", "build_parser"]

REPORT_SUFFIXES = {"markdown": ".md", "json": ".json"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rhetique",
        description="Multi-layer rhetorical analysis of speech transcripts using hosted LLMs.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze = subparsers.add_parser(
        "analyze",
        help="Run every analysis step and write a report.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    analyze.add_argument("--orator", required=True, help="Name of the speaker being analysed.")
    analyze.add_argument("--transcript", required=True, help="Path to the transcript (.txt or .md).")
    analyze.add_argument(
        "--service",
        default=None,
        choices=SUPPORTED_SERVICES,
        help="LLM provider to use (defaults to RHETIQUE_SERVICE or groq).",
    )
    analyze.add_argument(
        "--api-key-env",
        dest="api_key_env",
        default=None,
        help="Environment variable containing the provider API key.",
    )
    _register_session_argument(analyze)
    _register_output_arguments(analyze)

    status = subparsers.add_parser(
        "status",
        help="Show progress restored from the session snapshot.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    _register_session_argument(status)

    export = subparsers.add_parser(
        "export",
        help="Write a report from the session snapshot.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    _register_session_argument(export)
    _register_output_arguments(export)

    reset = subparsers.add_parser(
        "reset",
        help="Discard the session snapshot and saved inputs.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    _register_session_argument(reset)

    subparsers.add_parser("steps", help="List the analysis steps in execution order.")
    return parser


def _register_session_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--session-dir",
        dest="session_dir",
        default=None,
        help="Directory holding the session snapshot (defaults to RHETIQUE_SESSION_DIR).",
    )


def _register_output_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        default=None,
        help="Directory where the report is written (defaults to RHETIQUE_OUTPUT_DIR).",
    )
    parser.add_argument(
        "--format",
        dest="report_format",
        default="markdown",
        choices=sorted(REPORT_SUFFIXES),
        help="Report format.",
    )


def _build_config(args: argparse.Namespace) -> RhetiqueConfig:
    return RhetiqueConfig().with_paths(
        session_dir=getattr(args, "session_dir", None),
        output_dir=getattr(args, "output", None),
    )


def _persistence(config: RhetiqueConfig) -> SessionPersistence:
    return SessionPersistence(JsonFileStateStore(config.session_dir))


def _slugify(name: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", name).strip().lower()
    return re.sub(r"[\s_-]+", "-", slug) or "speech"


def _report_path(config: RhetiqueConfig, orator: str, report_format: str) -> Path:
    return config.output_dir / f"{_slugify(orator)}-report{REPORT_SUFFIXES[report_format]}"


def _progress_printer(steps: Sequence[AnalysisStep]) -> Callable[[OrchestrationView], None]:
    last_step = {"value": 0}

    def on_change(view: OrchestrationView) -> None:
        if view.is_loading and view.current_step and view.current_step != last_step["value"]:
            last_step["value"] = view.current_step
            print(f"[{view.current_step}/{len(steps)}] {steps[view.current_step - 1].title}", flush=True)

    return on_change


def _cmd_analyze(args: argparse.Namespace) -> int:
    config = _build_config(args)
    service = (args.service or config.llm.service).lower()
    if service not in SUPPORTED_SERVICES:
        print(f"Error: unsupported service {service!r}", file=sys.stderr)
        return 1

    if args.api_key_env:
        api_key = os.getenv(args.api_key_env)
        searched: Sequence[str] = (args.api_key_env,)
    else:
        api_key = config.llm.resolve_api_key(service=service)
        searched = config.llm.api_key_envs(service)
    if not api_key:
        print(f"Error: no API key found; set one of {', '.join(searched)}", file=sys.stderr)
        return 1

    transcript = load_transcript(args.transcript).content
    persistence = _persistence(config)
    persistence.save_inputs(args.orator, transcript)

    engine = build_engine(config, persistence=persistence)
    unsubscribe = engine.subscribe(_progress_printer(engine.steps))
    try:
        view = engine.run(api_key, service, args.orator, transcript)
    finally:
        unsubscribe()
        engine.close()

    if view.results:
        path = write_report(
            _report_path(config, args.orator, args.report_format),
            args.orator,
            transcript,
            view.results,
            fmt=args.report_format,
        )
        print(f"Report written to {path} ({len(view.results)}/{view.total_steps} sections)")

    if view.error:
        print(f"Error: {view.error}", file=sys.stderr)
        return 1
    return 0


def _restored_view(persistence: SessionPersistence) -> OrchestrationView | None:
    snapshot = persistence.restore()
    if snapshot is None:
        return None
    return OrchestrationView(
        results=tuple(snapshot.results),
        current_step=snapshot.current_step,
        total_steps=len(ANALYSIS_STEPS),
    )


def _cmd_status(args: argparse.Namespace) -> int:
    config = _build_config(args)
    persistence = _persistence(config)
    view = _restored_view(persistence)
    if view is None:
        print(f"No analysis in progress (0/{len(ANALYSIS_STEPS)}).")
        return 0

    inputs = persistence.load_inputs()
    if inputs.orator_name:
        print(f"Orator: {inputs.orator_name}")
    print(f"Progress: {view.current_step}/{view.total_steps} ({view.progress:.0%})")
    for result in view.results:
        print(f"  [done] {result.title} ({result.timestamp.isoformat(timespec='seconds')})")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    config = _build_config(args)
    persistence = _persistence(config)
    view = _restored_view(persistence)
    if view is None or not view.has_results:
        print("Error: no completed analysis steps to export.", file=sys.stderr)
        return 1

    inputs = persistence.load_inputs()
    orator = inputs.orator_name or "Unknown orator"
    path = write_report(
        _report_path(config, orator, args.report_format),
        orator,
        inputs.transcript,
        view.results,
        fmt=args.report_format,
    )
    print(f"Report written to {path}")
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    config = _build_config(args)
    persistence = _persistence(config)
    persistence.clear()
    persistence.clear_inputs()
    print("Session cleared.")
    return 0


def _cmd_steps(args: argparse.Namespace) -> int:
    for index, step in enumerate(ANALYSIS_STEPS, start=1):
        print(f"{index:>2}. {step.id:<10} {step.title}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    command_map: dict[str, Callable[[argparse.Namespace], int]] = {
        "analyze": _cmd_analyze,
        "status": _cmd_status,
        "export": _cmd_export,
        "reset": _cmd_reset,
        "steps": _cmd_steps,
    }
    runner = command_map.get(args.command)
    if runner is None:
        parser.print_help()
        return 0

    try:
        return runner(args)
    except (FileNotFoundError, ValueError, RhetiqueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
