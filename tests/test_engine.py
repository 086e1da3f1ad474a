from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from rhetique.analysis.catalogue import ANALYSIS_STEPS, MASTER_PROMPT
from rhetique.analysis.engine import AnalysisEngine, build_engine
from rhetique.analysis.models import AnalysisStep, OrchestrationView
from rhetique.analysis.persistence import STATE_KEY, InMemoryStateStore, SessionPersistence
from rhetique.config import PacingConfig, RetryConfig, RhetiqueConfig
from rhetique.llm.errors import EngineBusyError
from rhetique.llm.providers import LLMClient

FIXED_TIME = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeCaller:
    """Returns canned text per step title, or raises the scripted error."""

    def __init__(self, failures: Optional[dict[str, Exception]] = None) -> None:
        self.failures = failures or {}
        self.calls: list[dict[str, str]] = []
        self.on_call: Optional[Callable[[int], None]] = None

    def call_with_retry(self, service, credentials, system_prompt, user_message, max_attempts=None) -> str:
        self.calls.append(
            {
                "service": service,
                "credentials": credentials,
                "system_prompt": system_prompt,
                "user_message": user_message,
            }
        )
        if self.on_call is not None:
            self.on_call(len(self.calls))
        instruction = user_message.rsplit("\n\n", 1)[-1]
        for marker, error in self.failures.items():
            if marker in instruction:
                raise error
        return f"analysis for: {instruction}"


def _engine(caller, steps, fake_sleep, **kwargs) -> AnalysisEngine:
    return AnalysisEngine(caller, steps=steps, sleep=fake_sleep, clock=lambda: FIXED_TIME, **kwargs)


def test_completed_run_collects_every_step(two_steps, fake_sleep, recorded_sleeps) -> None:
    caller = FakeCaller()
    engine = _engine(caller, two_steps, fake_sleep)

    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert view.status == "completed"
    assert view.progress == 1.0
    assert view.has_results
    assert view.is_loading is False
    assert view.error is None
    assert view.current_step == 2
    assert [(result.id, result.title) for result in view.results] == [("layer1", "Phonetic"), ("layer2", "Lexical")]
    assert view.results[0].content == "analysis for: Analyse sound."
    assert view.results[0].timestamp == FIXED_TIME
    assert caller.calls[0]["system_prompt"] == MASTER_PROMPT
    assert caller.calls[0]["user_message"] == (
        "Orator Name: Lincoln\n\nSpeech Transcript:\nFour score\n\nAnalyse sound."
    )
    # one pause between the two steps, none after the last
    assert recorded_sleeps == [2.0]


def test_groq_runs_are_paced_more_slowly(fake_sleep, recorded_sleeps) -> None:
    steps = [AnalysisStep(id=f"s{index}", title=f"Step {index}", instruction=f"Do {index}.") for index in range(4)]
    engine = _engine(FakeCaller(), steps, fake_sleep)

    engine.run("key", "groq", "Churchill", "We shall fight")

    assert recorded_sleeps == [5.0, 5.0, 5.0]


def test_custom_pacing_can_disable_delay(two_steps, fake_sleep, recorded_sleeps) -> None:
    engine = _engine(FakeCaller(), two_steps, fake_sleep, pacing=PacingConfig(default_delay=0.0, service_delays={}))

    engine.run("key", "groq", "King", "I have a dream")

    assert recorded_sleeps == []


def test_failure_halts_run_and_names_the_step(two_steps, fake_sleep, recorded_sleeps) -> None:
    steps = two_steps + [AnalysisStep(id="layer3", title="Syntactic", instruction="Analyse syntax.")]
    caller = FakeCaller({"Analyse words.": RuntimeError("Model overloaded")})
    engine = _engine(caller, steps, fake_sleep)

    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert view.error == "Failed at Lexical: Model overloaded"
    assert view.status == "failed"
    assert view.is_loading is False
    assert [result.id for result in view.results] == ["layer1"]
    assert view.current_step == 2
    assert len(caller.calls) == 2
    assert recorded_sleeps == [2.0]


def test_observers_see_each_transition(two_steps, fake_sleep) -> None:
    engine = _engine(FakeCaller(), two_steps, fake_sleep)
    seen: list[OrchestrationView] = []
    unsubscribe = engine.subscribe(seen.append)

    engine.run("key", "openai", "Lincoln", "Four score")

    assert [(view.current_step, len(view.results), view.is_loading) for view in seen] == [
        (0, 0, True),
        (1, 0, True),
        (1, 1, True),
        (2, 1, True),
        (2, 2, True),
        (2, 2, False),
    ]

    unsubscribe()
    engine.reset()
    assert len(seen) == 6


def test_reset_returns_to_idle(two_steps, fake_sleep) -> None:
    engine = _engine(FakeCaller({"Analyse words.": RuntimeError("boom")}), two_steps, fake_sleep)
    engine.run("key", "openai", "Lincoln", "Four score")
    epoch = engine.epoch

    view = engine.reset()

    assert engine.epoch == epoch + 1
    assert view.results == ()
    assert view.current_step == 0
    assert view.error is None
    assert view.status == "idle"


def test_reset_during_call_discards_late_result(two_steps, fake_sleep, recorded_sleeps) -> None:
    caller = FakeCaller()
    engine = _engine(caller, two_steps, fake_sleep)
    seen: list[OrchestrationView] = []
    engine.subscribe(seen.append)
    caller.on_call = lambda count: engine.reset() if count == 1 else None

    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert len(caller.calls) == 1
    assert view.results == ()
    assert view.current_step == 0
    assert view.is_loading is False
    assert view.error is None
    assert recorded_sleeps == []
    assert seen[-1].status == "idle"


def test_reset_during_failing_call_discards_error(two_steps, fake_sleep) -> None:
    caller = FakeCaller({"Analyse sound.": RuntimeError("too late")})
    engine = _engine(caller, two_steps, fake_sleep)
    caller.on_call = lambda count: engine.reset()

    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert view.error is None
    assert view.results == ()


def test_background_run_is_invalidated_by_reset(two_steps, fake_sleep) -> None:
    entered = threading.Event()
    release = threading.Event()
    caller = FakeCaller()

    def block(count: int) -> None:
        if count == 1:
            entered.set()
            assert release.wait(timeout=5)

    caller.on_call = block
    with _engine(caller, two_steps, fake_sleep) as engine:
        future = engine.start("key", "openai", "Lincoln", "Four score")
        assert entered.wait(timeout=5)
        assert engine.state.is_loading is True

        engine.reset()
        release.set()
        view = future.result(timeout=5)

    assert view.results == ()
    assert view.is_loading is False
    assert len(caller.calls) == 1


def test_second_run_while_loading_is_rejected(two_steps, fake_sleep) -> None:
    caller = FakeCaller()
    engine = _engine(caller, two_steps, fake_sleep)
    rejected: list[Exception] = []

    def reenter(count: int) -> None:
        if count == 1:
            try:
                engine.run("key", "openai", "Someone", "else")
            except EngineBusyError as exc:
                rejected.append(exc)

    caller.on_call = reenter

    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert len(rejected) == 1
    assert view.status == "completed"


def test_new_run_clears_previous_results(two_steps, fake_sleep) -> None:
    caller = FakeCaller({"Analyse words.": RuntimeError("boom")})
    engine = _engine(caller, two_steps, fake_sleep)
    engine.run("key", "openai", "Lincoln", "Four score")

    caller.failures.clear()
    view = engine.run("key", "openai", "Lincoln", "Four score")

    assert view.error is None
    assert len(view.results) == 2


def test_progress_is_persisted_and_restored(two_steps, fake_sleep) -> None:
    store = InMemoryStateStore()
    persistence = SessionPersistence(store)
    caller = FakeCaller({"Analyse words.": RuntimeError("boom")})
    engine = _engine(caller, two_steps, fake_sleep, persistence=persistence)

    engine.run("key", "openai", "Lincoln", "Four score")

    payload = json.loads(store.get(STATE_KEY))
    assert payload["currentStep"] == 2
    assert [result["id"] for result in payload["results"]] == ["layer1"]

    restored = _engine(FakeCaller(), two_steps, fake_sleep, persistence=persistence).state
    assert restored.current_step == 2
    assert [result.id for result in restored.results] == ["layer1"]
    assert restored.is_loading is False
    assert restored.error is None

    engine.reset()
    assert STATE_KEY not in store


def test_snapshot_from_other_catalogue_is_discarded(two_steps, fake_sleep) -> None:
    store = InMemoryStateStore()
    persistence = SessionPersistence(store)
    _engine(FakeCaller(), two_steps, fake_sleep, persistence=persistence).run("key", "openai", "A", "B")

    others = [AnalysisStep(id="other", title="Other", instruction="x.")]
    engine = _engine(FakeCaller(), others, fake_sleep, persistence=persistence)

    assert engine.state.results == ()
    assert engine.state.current_step == 0


def test_catalogue_must_be_valid(fake_sleep) -> None:
    with pytest.raises(ValueError):
        AnalysisEngine(FakeCaller(), steps=[], sleep=fake_sleep)

    duplicate = AnalysisStep(id="dup", title="Dup", instruction="x.")
    with pytest.raises(ValueError):
        AnalysisEngine(FakeCaller(), steps=[duplicate, duplicate], sleep=fake_sleep)


def test_default_catalogue_shape() -> None:
    engine = AnalysisEngine(FakeCaller())

    assert engine.total_steps == len(ANALYSIS_STEPS) == 10
    assert engine.steps[-1].id == "synthesis"
    assert engine.state.status == "idle"


def test_build_engine_wires_retry_and_adapter(two_steps, fake_sleep, recorded_sleeps, dummy_chat_model) -> None:
    dummy_chat_model.reply = "model text"
    config = RhetiqueConfig(retry=RetryConfig(max_attempts=2))

    engine = build_engine(config, steps=two_steps, sleep=fake_sleep, client=LLMClient())
    view = engine.run("sk-test", "openai", "Lincoln", "Four score")

    assert view.status == "completed"
    assert [result.content for result in view.results] == ["model text", "model text"]
    assert dummy_chat_model.instances[0].kwargs["api_key"] == "sk-test"
    assert recorded_sleeps == [2.0]


def test_build_engine_reports_daily_limit(two_steps, fake_sleep, recorded_sleeps, dummy_chat_model) -> None:
    from rhetique.llm.errors import ApiError

    dummy_chat_model.error = ApiError("Limit reached on tokens per day (TPD)", status_code=429)

    engine = build_engine(steps=two_steps, sleep=fake_sleep)
    view = engine.run("gsk", "groq", "Lincoln", "Four score")

    assert view.error.startswith("Failed at Phonetic: Daily API limit reached.")
    assert "Suggestions:" in view.error
    assert len(dummy_chat_model.instances) == 1
    assert recorded_sleeps == []
