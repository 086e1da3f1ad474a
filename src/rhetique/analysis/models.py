"""Data model for analysis steps, their results and the observable run state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "AnalysisStep",
    "AnalysisResult",
    "SessionSnapshot",
    "SessionInputs",
    "OrchestrationView",
]


class FrozenBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


@dataclass(frozen=True, slots=True)
class AnalysisStep:
    """One fixed unit of analysis work, i.e. one LLM call."""

    id: str
    title: str
    instruction: str


class AnalysisResult(FrozenBaseModel):
    """Text returned by the model for a single completed step."""

    id: str = Field(..., description="Identifier copied from the analysis step.")
    title: str = Field(..., description="Display title copied from the analysis step.")
    content: str = Field(..., description="Raw text returned by the LLM.")
    timestamp: datetime = Field(..., description="UTC capture time.")


class SessionSnapshot(FrozenBaseModel):
    """The only persisted shape: ``{"results": [...], "currentStep": n}``."""

    results: List[AnalysisResult] = Field(default_factory=list)
    current_step: int = Field(default=0, ge=0, alias="currentStep")

    @model_validator(mode="after")
    def _results_within_progress(self) -> "SessionSnapshot":
        if len(self.results) > self.current_step:
            raise ValueError("snapshot holds more results than attempted steps")
        return self

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SessionInputs(FrozenBaseModel):
    """Form inputs kept alongside the snapshot so a report can be rebuilt."""

    orator_name: str = Field(default="", alias="oratorName")
    transcript: str = ""

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass(frozen=True, slots=True)
class OrchestrationView:
    """Read-only copy of the engine state handed to observers."""

    results: tuple[AnalysisResult, ...]
    current_step: int
    total_steps: int
    is_loading: bool = False
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.is_loading:
            return "running"
        if self.error is not None:
            return "failed"
        if self.total_steps and len(self.results) == self.total_steps:
            return "completed"
        return "idle"

    @property
    def progress(self) -> float:
        if not self.total_steps:
            return 0.0
        return self.current_step / self.total_steps

    @property
    def has_results(self) -> bool:
        return bool(self.results)

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(results=list(self.results), current_step=self.current_step)
