from __future__ import annotations

import base64
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any
from urllib import error, request

from autoheal.config.schema import LLMSettings
from autoheal.core.exceptions import AIUnavailable, VisionUnsupported

log = logging.getLogger(__name__)


class CompletionClient(ABC):
    """Provider-neutral text completion interface."""

    provider_name = "unknown"
    supports_vision = False

    @abstractmethod
    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.1,
    ) -> str:
        raise NotImplementedError

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        raise VisionUnsupported(f"{self.provider_name} has no vision support")


class OpenAICompletionClient(CompletionClient):
    provider_name = "openai"
    supports_vision = True
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 30) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return self._chat(messages, max_tokens, temperature)

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        encoded = base64.b64encode(image).decode("ascii")
        content = [
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}},
            {"type": "text", "text": prompt},
        ]
        return self._chat([{"role": "user", "content": content}], max_tokens, 0)

    def _chat(self, messages: list[dict[str, Any]], max_tokens: int, temperature: float) -> str:
        body = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        response = _post_json(self.endpoint, body, headers=self._headers(), timeout=self.timeout)
        try:
            return response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AIUnavailable(f"{self.provider_name} returned an unexpected payload") from exc

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }


class LocalCompletionClient(OpenAICompletionClient):
    """OpenAI-compatible local server such as Ollama or LM Studio."""

    provider_name = "local"
    supports_vision = False

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = 30,
    ) -> None:
        root = (base_url or os.getenv("LOCAL_LLM_URL", "http://localhost:11434/v1")).rstrip("/")
        super().__init__(
            api_key or os.getenv("LOCAL_LLM_API_KEY", "not-needed"),
            model or os.getenv("LOCAL_LLM_MODEL", "llama3.2:3b"),
            timeout,
        )
        self.endpoint = f"{root}/chat/completions"

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        raise VisionUnsupported("local LLM has no vision support")


class AnthropicCompletionClient(CompletionClient):
    provider_name = "anthropic"
    supports_vision = True
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 30) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")
        self.timeout = timeout

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            body["system"] = system
        return self._send(body)

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        body = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": "image/png",
                                "data": base64.b64encode(image).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
        }
        return self._send(body)

    def _send(self, body: dict[str, Any]) -> str:
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        try:
            return response["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AIUnavailable("anthropic returned an unexpected payload") from exc


class GeminiCompletionClient(CompletionClient):
    provider_name = "gemini"
    supports_vision = True
    endpoint_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 30) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.timeout = timeout

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        if system:
            body["system_instruction"] = {"parts": [{"text": system}]}
        return self._send(body)

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        body = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"inline_data": {"mime_type": "image/png", "data": base64.b64encode(image).decode("ascii")}},
                        {"text": prompt},
                    ],
                }
            ],
            "generationConfig": {"temperature": 0, "maxOutputTokens": max_tokens},
        }
        return self._send(body)

    def _send(self, body: dict[str, Any]) -> str:
        response = _post_json(
            self.endpoint_template.format(model=self.model),
            body,
            headers={
                "x-goog-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        candidates = response.get("candidates", [])
        if not candidates:
            raise AIUnavailable("Gemini returned no candidates")
        parts = candidates[0].get("content", {}).get("parts", [])
        text_parts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        content = "".join(text_parts).strip()
        if not content:
            raise AIUnavailable("Gemini returned an empty response")
        return content


class DisabledCompletionClient(CompletionClient):
    """Stands in when AI features are switched off; every call is unavailable."""

    provider_name = "disabled"

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        raise AIUnavailable("AI is disabled")


class LazyCompletionClient(CompletionClient):
    """Defers provider client construction until a completion is actually needed."""

    def __init__(self, settings: LLMSettings | None = None) -> None:
        self.settings = settings
        self.provider_name = _provider(settings)
        self._client: CompletionClient | None = None

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = create_completion_client(self.settings)
            self.provider_name = self._client.provider_name
        return self._client

    @property
    def supports_vision(self) -> bool:  # type: ignore[override]
        return self.client.supports_vision

    def complete(self, prompt, *, system=None, max_tokens=1000, temperature=0.1) -> str:
        return self.client.complete(prompt, system=system, max_tokens=max_tokens, temperature=temperature)

    def complete_with_image(self, prompt: str, image: bytes, *, max_tokens: int = 1000) -> str:
        return self.client.complete_with_image(prompt, image, max_tokens=max_tokens)


def _provider(settings: LLMSettings | None) -> str:
    if os.getenv("LLM_PROVIDER"):
        return os.environ["LLM_PROVIDER"].lower()
    return settings.provider if settings else "openai"


def create_completion_client(settings: LLMSettings | None = None) -> CompletionClient:
    provider = _provider(settings)
    model = settings.model if settings else None
    timeout = settings.timeout_seconds if settings else 30
    log.info("Initializing AI provider: %s", provider)
    if provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise AIUnavailable("OPENAI_API_KEY is required when LLM_PROVIDER=openai")
        return OpenAICompletionClient(api_key, model, timeout)
    if provider == "anthropic":
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise AIUnavailable("ANTHROPIC_API_KEY is required when LLM_PROVIDER=anthropic")
        return AnthropicCompletionClient(api_key, model, timeout)
    if provider == "gemini":
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise AIUnavailable("GEMINI_API_KEY is required when LLM_PROVIDER=gemini")
        return GeminiCompletionClient(api_key, model, timeout)
    if provider == "local":
        return LocalCompletionClient(settings.base_url if settings else None, model, timeout=timeout)
    if provider == "disabled":
        return DisabledCompletionClient()
    raise AIUnavailable(f"Unsupported LLM provider: {provider}")


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float = 30) -> dict[str, Any]:
    encoded = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise AIUnavailable(f"LLM request failed with status {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise AIUnavailable(f"LLM request could not be completed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise AIUnavailable(f"LLM request timed out after {timeout}s") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AIUnavailable("LLM endpoint returned a non-JSON body") from exc
