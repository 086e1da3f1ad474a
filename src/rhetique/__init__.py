"""Sequential LLM-driven rhetorical analysis of speech transcripts."""

from .analysis import (
    ANALYSIS_STEPS,
    MASTER_PROMPT,
    AnalysisEngine,
    AnalysisResult,
    AnalysisStep,
    InMemoryStateStore,
    JsonFileStateStore,
    OrchestrationView,
    SessionPersistence,
    SessionSnapshot,
    StateStore,
    build_engine,
)
from .config import LLMConfig, PacingConfig, RetryConfig, RhetiqueConfig
from .io import LoadedTranscript, load_transcript
from .llm import LLMClient, RetryController
from .paths import SessionPathConfig, resolve_output_path, resolve_session_path
from .report import render_markdown_report, write_report

__all__ = [
    "ANALYSIS_STEPS",
    "MASTER_PROMPT",
    "AnalysisEngine",
    "AnalysisResult",
    "AnalysisStep",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "OrchestrationView",
    "SessionPersistence",
    "SessionSnapshot",
    "StateStore",
    "build_engine",
    "LLMConfig",
    "PacingConfig",
    "RetryConfig",
    "RhetiqueConfig",
    "LoadedTranscript",
    "load_transcript",
    "LLMClient",
    "RetryController",
    "SessionPathConfig",
    "resolve_output_path",
    "resolve_session_path",
    "render_markdown_report",
    "write_report",
]
