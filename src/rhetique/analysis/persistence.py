"""Session-scoped persistence of completed analysis progress.

Only ``results`` and ``currentStep`` are written. The loading flag and the
last error describe an in-flight run, which cannot survive a restart, so
they are never stored.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from .models import OrchestrationView, SessionInputs, SessionSnapshot

logger = logging.getLogger(__name__)

__all__ = [
    "STATE_KEY",
    "INPUTS_KEY",
    "StateStore",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "SessionPersistence",
]

STATE_KEY = "rhetorical-analysis-state"
INPUTS_KEY = "rhetorical-analysis-inputs"
_UNSAFE_KEY_CHARS = re.compile(r"[^\w\-.]")


@runtime_checkable
class StateStore(Protocol):
    """Minimal key-value capability the persistence bridge depends on."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStateStore:
    """Process-local store; lives exactly as long as the object."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileStateStore:
    """One JSON document per key inside a session directory."""

    def __init__(self, root: Path | str, *, encoding: str = "utf-8") -> None:
        self._root = Path(root).expanduser()
        self._encoding = encoding

    @property
    def root(self) -> Path:
        return self._root

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding=self._encoding)

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(value, encoding=self._encoding)
        os.replace(tmp_path, path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def _path(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key).strip("_.") or "state"
        return self._root / f"{safe}.json"


class SessionPersistence:
    """Snapshots engine views into a :class:`StateStore` and restores them."""

    def __init__(
        self,
        store: StateStore,
        *,
        key: str = STATE_KEY,
        inputs_key: str = INPUTS_KEY,
    ) -> None:
        self._store = store
        self._key = key
        self._inputs_key = inputs_key

    @property
    def store(self) -> StateStore:
        return self._store

    def __call__(self, view: OrchestrationView) -> None:
        self.snapshot(view)

    def snapshot(self, view: OrchestrationView) -> None:
        if not view.results and view.current_step <= 0:
            return
        try:
            self._store.set(self._key, view.to_snapshot().to_json())
        except OSError as exc:
            logger.warning("Failed to persist analysis state: %s", exc)

    def restore(self) -> Optional[SessionSnapshot]:
        try:
            raw = self._store.get(self._key)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to load persisted analysis state: %s", exc)
            return None
        if raw is None:
            return None
        try:
            return SessionSnapshot.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Ignoring malformed analysis snapshot: %s", exc)
            return None

    def clear(self) -> None:
        try:
            self._store.delete(self._key)
        except OSError as exc:
            logger.warning("Failed to clear persisted analysis state: %s", exc)

    def save_inputs(self, orator_name: str, transcript: str) -> None:
        if not (orator_name or transcript):
            return
        inputs = SessionInputs(orator_name=orator_name, transcript=transcript)
        try:
            self._store.set(self._inputs_key, inputs.to_json())
        except OSError as exc:
            logger.warning("Failed to persist inputs: %s", exc)

    def load_inputs(self) -> SessionInputs:
        try:
            raw = self._store.get(self._inputs_key)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to load inputs: %s", exc)
            return SessionInputs()
        if raw is None:
            return SessionInputs()
        try:
            return SessionInputs.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Ignoring malformed inputs: %s", exc)
            return SessionInputs()

    def clear_inputs(self) -> None:
        try:
            self._store.delete(self._inputs_key)
        except OSError as exc:
            logger.warning("Failed to clear input storage: %s", exc)
