"""Rhetorical analysis workflow components."""

from .catalogue import ANALYSIS_STEPS, MASTER_PROMPT, build_user_message
from .engine import AnalysisEngine, AnalysisRunState, StepCaller, build_engine
from .models import (
    AnalysisResult,
    AnalysisStep,
    OrchestrationView,
    SessionInputs,
    SessionSnapshot,
)
from .persistence import (
    INPUTS_KEY,
    STATE_KEY,
    InMemoryStateStore,
    JsonFileStateStore,
    SessionPersistence,
    StateStore,
)

__all__ = [
    "ANALYSIS_STEPS",
    "MASTER_PROMPT",
    "build_user_message",
    "AnalysisEngine",
    "AnalysisRunState",
    "StepCaller",
    "build_engine",
    "AnalysisResult",
    "AnalysisStep",
    "OrchestrationView",
    "SessionInputs",
    "SessionSnapshot",
    "INPUTS_KEY",
    "STATE_KEY",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "SessionPersistence",
    "StateStore",
]
