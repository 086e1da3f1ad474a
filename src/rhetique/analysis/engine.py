"""LangGraph-driven sequencer for the multi-step rhetorical analysis.

Each analysis step is one graph node; the nodes are chained in catalogue
order with a conditional edge that leaves the graph as soon as a step fails
or the run has been invalidated by a reset. The engine owns the observable
state (results, progress, loading flag, error) and hands immutable
:class:`OrchestrationView` copies to subscribers.

Runs execute one step at a time. Suspension happens only inside the model
call, the retry backoff and the fixed inter-step delay. A reset never
interrupts an in-flight call; it bumps the epoch instead, and every mutation
made on behalf of a run is dropped once its epoch is no longer current.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Sequence, TypedDict

from langgraph.graph import END, START, StateGraph

from ..config import PacingConfig, RhetiqueConfig
from ..llm.errors import EngineBusyError, StepExecutionError
from ..llm.providers import LLMClient, build_backends
from ..llm.retry import RetryController
from .catalogue import ANALYSIS_STEPS, MASTER_PROMPT, build_user_message
from .models import AnalysisResult, AnalysisStep, OrchestrationView, SessionSnapshot
from .persistence import SessionPersistence

logger = logging.getLogger(__name__)

__all__ = ["AnalysisEngine", "AnalysisRunState", "StepCaller", "build_engine"]

Listener = Callable[[OrchestrationView], None]


class StepCaller(Protocol):
    """Anything able to turn prompts into text with its own retry policy."""

    def call_with_retry(
        self,
        service: str,
        credentials: str,
        system_prompt: str,
        user_message: str,
        max_attempts: Optional[int] = None,
    ) -> str:  # pragma: no cover - interface
        ...


class AnalysisRunState(TypedDict, total=False):
    """State propagated between the step nodes of one run."""

    service: str
    credentials: str
    subject_name: str
    transcript: str
    epoch: int
    completed: int
    failed: bool
    stale: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisEngine:
    """Drives the ordered analysis steps and exposes their progress."""

    def __init__(
        self,
        caller: StepCaller,
        *,
        steps: Sequence[AnalysisStep] = ANALYSIS_STEPS,
        system_prompt: str = MASTER_PROMPT,
        pacing: Optional[PacingConfig] = None,
        persistence: Optional[SessionPersistence] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not steps:
            raise ValueError("At least one analysis step is required")
        step_ids = [step.id for step in steps]
        if len(set(step_ids)) != len(step_ids):
            raise ValueError("Analysis step ids must be unique")

        self._caller = caller
        self._steps: tuple[AnalysisStep, ...] = tuple(steps)
        self._system_prompt = system_prompt
        self._pacing = pacing or PacingConfig()
        self._persistence = persistence
        self._sleep = sleep
        self._clock = clock

        self._lock = threading.RLock()
        self._epoch = 0
        self._results: List[AnalysisResult] = []
        self._current_step = 0
        self._is_loading = False
        self._error: Optional[str] = None
        self._listeners: List[Listener] = []
        self._executor: Optional[ThreadPoolExecutor] = None

        self._graph = self._build_graph()

        if persistence is not None:
            self._restore(persistence.restore())
            self._listeners.append(persistence)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def steps(self) -> tuple[AnalysisStep, ...]:
        return self._steps

    @property
    def total_steps(self) -> int:
        return len(self._steps)

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    @property
    def state(self) -> OrchestrationView:
        with self._lock:
            return self._view_locked()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every state change; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def run(self, credentials: str, service: str, subject_name: str, transcript: str) -> OrchestrationView:
        """Execute every step in order and return the final state."""

        with self._lock:
            if self._is_loading:
                raise EngineBusyError("An analysis run is already in progress")
            self._epoch += 1
            epoch = self._epoch
            self._results = []
            self._current_step = 0
            self._error = None
            self._is_loading = True
            self._publish_locked()

        logger.info("Starting %d-step analysis for %r via %s", self.total_steps, subject_name, service)
        initial_state: AnalysisRunState = {
            "service": service,
            "credentials": credentials,
            "subject_name": subject_name,
            "transcript": transcript,
            "epoch": epoch,
            "completed": 0,
            "failed": False,
            "stale": False,
        }
        try:
            final_state = self._graph.invoke(
                initial_state,
                config={"recursion_limit": self.total_steps + 5},
            )
        except Exception:
            with self._lock:
                if epoch == self._epoch:
                    self._is_loading = False
                    self._publish_locked()
            raise

        with self._lock:
            if epoch == self._epoch and self._error is None:
                self._current_step = self.total_steps
                self._is_loading = False
                self._publish_locked()
                logger.info("Analysis complete: %d/%d steps", len(self._results), self.total_steps)
            elif final_state.get("stale") or epoch != self._epoch:
                logger.info("Run %d was superseded; its remaining output was discarded", epoch)
            return self._view_locked()

    def start(
        self,
        credentials: str,
        service: str,
        subject_name: str,
        transcript: str,
    ) -> "Future[OrchestrationView]":
        """Run on the engine's dedicated worker thread."""

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rhetique-engine")
            executor = self._executor
        return executor.submit(self.run, credentials, service, subject_name, transcript)

    def reset(self) -> OrchestrationView:
        """Return to idle from any state and discard the persisted snapshot."""

        with self._lock:
            self._epoch += 1
            self._results = []
            self._current_step = 0
            self._error = None
            self._is_loading = False
            if self._persistence is not None:
                self._persistence.clear()
            self._publish_locked()
            return self._view_locked()

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "AnalysisEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # LangGraph wiring
    # ------------------------------------------------------------------
    def _build_graph(self):
        graph = StateGraph(AnalysisRunState)
        names = [f"step_{step.id}" for step in self._steps]
        for index, (name, step) in enumerate(zip(names, self._steps)):
            graph.add_node(name, self._make_step_node(index, step))

        graph.add_edge(START, names[0])
        for index, name in enumerate(names):
            if index == len(names) - 1:
                graph.add_edge(name, END)
                continue
            graph.add_conditional_edges(name, self._make_router(names[index + 1]), [names[index + 1], END])
        return graph.compile()

    @staticmethod
    def _make_router(next_name: str):
        def route(state: AnalysisRunState) -> str:
            if state.get("failed") or state.get("stale"):
                return END
            return next_name

        return route

    def _make_step_node(self, index: int, step: AnalysisStep):
        is_last = index == len(self._steps) - 1

        def run_step(state: AnalysisRunState) -> AnalysisRunState:
            epoch = state["epoch"]
            service = state["service"]
            if not self._apply(epoch, self._mark_started, index):
                return {"stale": True}

            logger.info("Step %d/%d: %s", index + 1, self.total_steps, step.title)
            user_message = build_user_message(state["subject_name"], state["transcript"], step)
            try:
                content = self._caller.call_with_retry(
                    service,
                    state["credentials"],
                    self._system_prompt,
                    user_message,
                )
            except Exception as exc:
                failure = StepExecutionError(step.title, exc)
                if not self._apply(epoch, self._mark_failed, str(failure)):
                    return {"stale": True}
                logger.error("%s", failure)
                return {"failed": True}

            result = AnalysisResult(id=step.id, title=step.title, content=content, timestamp=self._clock())
            if not self._apply(epoch, self._append_result, result):
                logger.info("Discarding late result for step %s", step.id)
                return {"stale": True}

            if not is_last:
                delay = self._pacing.delay_for(service)
                if delay > 0:
                    logger.debug("Pausing %.1fs before the next step", delay)
                    self._sleep(delay)
            return {"completed": index + 1}

        return run_step

    # ------------------------------------------------------------------
    # State mutation helpers (called with the lock held)
    # ------------------------------------------------------------------
    def _apply(self, epoch: int, mutate: Callable[..., None], *args: object) -> bool:
        with self._lock:
            if epoch != self._epoch:
                return False
            mutate(*args)
            self._publish_locked()
            return True

    def _mark_started(self, index: int) -> None:
        self._current_step = index + 1

    def _append_result(self, result: AnalysisResult) -> None:
        self._results.append(result)

    def _mark_failed(self, message: str) -> None:
        self._error = message
        self._is_loading = False

    def _restore(self, snapshot: Optional[SessionSnapshot]) -> None:
        if snapshot is None:
            return
        if snapshot.current_step > self.total_steps or any(
            result.id != step.id for result, step in zip(snapshot.results, self._steps)
        ):
            logger.warning("Discarding persisted analysis state that does not match the step catalogue")
            return
        self._results = list(snapshot.results)
        self._current_step = snapshot.current_step
        logger.info("Restored %d completed step(s) from the session snapshot", len(self._results))

    def _view_locked(self) -> OrchestrationView:
        return OrchestrationView(
            results=tuple(self._results),
            current_step=self._current_step,
            total_steps=self.total_steps,
            is_loading=self._is_loading,
            error=self._error,
        )

    def _publish_locked(self) -> None:
        # listeners run under the lock so a snapshot can never land after a reset
        view = self._view_locked()
        for listener in list(self._listeners):
            listener(view)


def build_engine(
    config: Optional[RhetiqueConfig] = None,
    *,
    persistence: Optional[SessionPersistence] = None,
    client: Optional[LLMClient] = None,
    steps: Sequence[AnalysisStep] = ANALYSIS_STEPS,
    sleep: Callable[[float], None] = time.sleep,
) -> AnalysisEngine:
    """Wire the default adapter, retry controller and pacing from ``config``."""

    config = config or RhetiqueConfig()
    client = client or LLMClient(build_backends(temperature=config.llm.temperature))
    controller = RetryController(client.invoke, config=config.retry, sleep=sleep)
    return AnalysisEngine(
        controller,
        steps=steps,
        pacing=config.pacing,
        persistence=persistence,
        sleep=sleep,
    )
