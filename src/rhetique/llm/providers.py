"""Uniform text-in/text-out contract over the supported LLM backends.

``openai`` and ``groq`` are OpenAI-compatible chat-completion endpoints and
are driven through ``langchain_openai.ChatOpenAI``; ``gemini`` uses the
``google.generativeai`` generate-content API and walks a list of candidate
model identifiers. Every backend failure is normalised into the error types
from :mod:`rhetique.llm.errors`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Protocol

import google.generativeai as genai
import openai
from google.api_core import exceptions as google_exceptions
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .errors import ApiError, AuthError, ConfigurationError, TransportError

logger = logging.getLogger(__name__)

__all__ = [
    "AUTH_STATUS_CODES",
    "DEFAULT_BACKENDS",
    "BackendSettings",
    "ChatBackend",
    "OpenAICompatibleBackend",
    "GeminiBackend",
    "LLMClient",
    "build_backends",
]

DEFAULT_TEMPERATURE = 0.7
AUTH_STATUS_CODES = frozenset({401, 403})
GEMINI_AUTH_STATUS_CODES = frozenset({400, 401, 403})


@dataclass(frozen=True, slots=True)
class BackendSettings:
    """Static call parameters for one backend."""

    models: tuple[str, ...]
    base_url: str | None = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = 4096
    timeout: float | None = 120.0
    key_help: str = ""

    @property
    def model(self) -> str:
        return self.models[0]

    def as_chat_kwargs(self, api_key: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "api_key": api_key,
            # retrying is owned by rhetique.llm.retry
            "max_retries": 0,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


DEFAULT_BACKENDS: Mapping[str, BackendSettings] = {
    "openai": BackendSettings(
        models=("gpt-4o",),
        max_tokens=4096,
        key_help="Create or check your key at https://platform.openai.com/api-keys",
    ),
    "groq": BackendSettings(
        models=("llama-3.3-70b-versatile",),
        base_url="https://api.groq.com/openai/v1",
        max_tokens=8000,
        key_help="Get a free API key at https://console.groq.com/keys",
    ),
    "gemini": BackendSettings(
        models=(
            "gemini-1.5-flash-latest",
            "gemini-1.5-pro-latest",
            "gemini-pro",
        ),
        max_tokens=8192,
        key_help=(
            "1. Get an API key at https://aistudio.google.com/app/apikey\n"
            '2. Make sure the "Generative Language API" is enabled\n'
            "3. If using an old API key, create a new one\n"
            "4. Or switch to a different provider"
        ),
    ),
}


class ChatBackend(Protocol):
    """One provider able to turn a system prompt and user message into text."""

    name: str

    def complete(self, api_key: str, system_prompt: str, user_message: str) -> str:  # pragma: no cover - interface
        ...


class OpenAICompatibleBackend:
    """Chat-completions backend built on ``ChatOpenAI``; a client is created per call."""

    def __init__(self, name: str, settings: BackendSettings) -> None:
        self.name = name
        self.settings = settings

    def complete(self, api_key: str, system_prompt: str, user_message: str) -> str:
        client = ChatOpenAI(**self.settings.as_chat_kwargs(api_key))
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_message)]
        try:
            response = client.invoke(messages)
        except openai.APIStatusError as exc:
            raise _status_error(
                self.name,
                exc.status_code,
                _openai_error_message(exc),
                key_help=self.settings.key_help,
            ) from exc
        except openai.APIConnectionError as exc:
            raise TransportError(
                f"{_label(self.name)} request failed: {exc}",
                service=self.name,
            ) from exc

        content = _extract_content(response)
        if not content:
            raise ApiError(f"{_label(self.name)} returned an empty completion", service=self.name)
        return content


class GeminiBackend:
    """Generate-content backend that falls back across candidate model names."""

    name = "gemini"

    def __init__(self, settings: BackendSettings) -> None:
        self.settings = settings

    def complete(self, api_key: str, system_prompt: str, user_message: str) -> str:
        genai.configure(api_key=api_key)
        generation_config = {
            "temperature": self.settings.temperature,
            "max_output_tokens": self.settings.max_tokens,
        }
        request_options = {"timeout": self.settings.timeout} if self.settings.timeout else None
        prompt = f"{system_prompt}\n\n{user_message}"

        last_error: ApiError | None = None
        for model_name in self.settings.models:
            logger.debug("Trying Gemini model %s", model_name)
            model = genai.GenerativeModel(model_name)
            try:
                response = model.generate_content(
                    prompt,
                    generation_config=generation_config,
                    request_options=request_options,
                )
            except google_exceptions.GoogleAPIError as exc:
                status = _google_status(exc)
                message = getattr(exc, "message", None) or str(exc)
                if status in GEMINI_AUTH_STATUS_CODES:
                    # an invalid key fails identically on every model
                    raise AuthError(
                        f"Gemini API Error ({status}): {message}\n\nSteps to fix:\n{self.settings.key_help}",
                        service=self.name,
                        status_code=status,
                    ) from exc
                logger.warning("Gemini model %s failed (%s): %s", model_name, status, message)
                last_error = ApiError(message, service=self.name, status_code=status)
                continue
            except Exception as exc:
                logger.warning("Gemini model %s request failed: %s", model_name, exc)
                last_error = TransportError(str(exc) or type(exc).__name__, service=self.name)
                continue

            try:
                text = response.text
            except ValueError as exc:
                logger.warning("Gemini model %s returned no usable text: %s", model_name, exc)
                last_error = ApiError(str(exc), service=self.name)
                continue
            logger.debug("Gemini model %s succeeded", model_name)
            return text

        detail = last_error.message if last_error is not None else "Unknown error"
        raise ApiError(
            f"All Gemini models failed: {detail}\n\n"
            "Solutions:\n"
            "1. Get a valid API key: https://aistudio.google.com/apikey\n"
            "2. Try OpenAI or Groq instead",
            service=self.name,
            status_code=last_error.status_code if last_error is not None else None,
        )


def build_backends(
    overrides: Mapping[str, BackendSettings] | None = None,
    *,
    temperature: float | None = None,
) -> dict[str, ChatBackend]:
    """Instantiate the default backend set, optionally replacing settings."""

    settings = dict(DEFAULT_BACKENDS)
    settings.update(overrides or {})
    if temperature is not None:
        settings = {name: replace(value, temperature=temperature) for name, value in settings.items()}

    backends: dict[str, ChatBackend] = {}
    for name, backend_settings in settings.items():
        if name == "gemini":
            backends[name] = GeminiBackend(backend_settings)
        else:
            backends[name] = OpenAICompatibleBackend(name, backend_settings)
    return backends


class LLMClient:
    """Dispatches ``invoke`` calls to the selected backend."""

    def __init__(self, backends: Mapping[str, ChatBackend] | None = None) -> None:
        self._backends = dict(backends) if backends is not None else build_backends()

    @property
    def services(self) -> tuple[str, ...]:
        return tuple(self._backends)

    def invoke(self, service: str, credentials: str, system_prompt: str, user_message: str) -> str:
        backend = self._backends.get((service or "").lower())
        if backend is None:
            raise ConfigurationError(
                f"Unknown API service: {service!r}. Available: {', '.join(sorted(self._backends))}"
            )
        if not credentials:
            raise ConfigurationError(f"No API key supplied for {_label(backend.name)}")
        return backend.complete(credentials, system_prompt, user_message)


def _status_error(service: str, status: int, message: str, *, key_help: str = "") -> ApiError:
    if status in AUTH_STATUS_CODES:
        suffix = f"\n\n{key_help}" if key_help else ""
        return AuthError(
            f"{_label(service)} rejected the API key ({status}): {message}{suffix}",
            service=service,
            status_code=status,
        )
    return ApiError(message, service=service, status_code=status)


def _openai_error_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return exc.message or f"{exc.status_code} error"


def _google_status(exc: Exception) -> int | None:
    code = getattr(exc, "code", None)
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def _extract_content(response: Any) -> str:
    content = getattr(response, "content", "")
    if isinstance(content, list):
        pieces = [segment.get("text", "") for segment in content if isinstance(segment, dict)]
        return "".join(pieces)
    return str(content or "")


def _label(service: str) -> str:
    return {"openai": "OpenAI", "groq": "Groq", "gemini": "Gemini"}.get(service, service)
