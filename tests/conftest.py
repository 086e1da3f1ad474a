"""Shared fixtures for the test suite."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Iterable

import pytest

from rhetique.analysis.models import AnalysisStep

ENV_VARS = {
    "RHETIQUE_SERVICE",
    "RHETIQUE_API_KEY",
    "RHETIQUE_API_KEY_ENV",
    "RHETIQUE_TEMPERATURE",
    "RHETIQUE_MAX_ATTEMPTS",
    "RHETIQUE_STEP_DELAY",
    "OPENAI_API_KEY",
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
}


@pytest.fixture(autouse=True)
def _clear_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure LLM-related environment variables do not leak between tests."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps: list[float]) -> Callable[[float], None]:
    """A sleep replacement that records durations instead of waiting."""

    return recorded_sleeps.append


@pytest.fixture
def two_steps() -> list[AnalysisStep]:
    return [
        AnalysisStep(id="layer1", title="Phonetic", instruction="Analyse sound."),
        AnalysisStep(id="layer2", title="Lexical", instruction="Analyse words."),
    ]


@pytest.fixture
def dummy_chat_model(monkeypatch: pytest.MonkeyPatch):
    """Patch the LangChain chat client used by the OpenAI-compatible backends."""

    from rhetique.llm import providers

    class DummyChatModel:
        instances: list["DummyChatModel"] = []
        reply: Any = "dummy reply"
        error: Exception | None = None

        def __init__(self, **kwargs: Any) -> None:
            self.kwargs = kwargs
            self.invocations: list[tuple[Any, ...]] = []
            DummyChatModel.instances.append(self)

        def invoke(self, messages: Iterable[Any], **kwargs: Any):
            self.invocations.append(tuple(messages))
            if DummyChatModel.error is not None:
                raise DummyChatModel.error
            return SimpleNamespace(content=DummyChatModel.reply)

    DummyChatModel.instances = []
    monkeypatch.setattr(providers, "ChatOpenAI", DummyChatModel)
    return DummyChatModel


@pytest.fixture
def fake_genai(monkeypatch: pytest.MonkeyPatch):
    """Patch ``google.generativeai`` with a scriptable stand-in."""

    from rhetique.llm import providers

    class FakeGenerativeModel:
        def __init__(self, model_name: str) -> None:
            self.model_name = model_name

        def generate_content(self, prompt: str, **kwargs: Any):
            fake.calls.append((self.model_name, prompt, kwargs))
            outcome = fake.outcomes.get(self.model_name)
            if isinstance(outcome, Exception):
                raise outcome
            if outcome is None:
                raise AssertionError(f"Unexpected model {self.model_name}")
            return SimpleNamespace(text=outcome)

    fake = SimpleNamespace(
        configured={},
        calls=[],
        outcomes={},
        GenerativeModel=FakeGenerativeModel,
    )
    fake.configure = lambda **kwargs: fake.configured.update(kwargs)
    monkeypatch.setattr(providers, "genai", fake)
    return fake
