"""Translation provider abstractions."""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from .errors import (
    RateLimitError,
    ResponseFormatError,
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .structures import TranslationBatch

SYSTEM_PROMPT = (
    "You are a translation assistant for software localization files. "
    "Output ONLY valid JSON, no markdown, no explanation."
)

TRANSLATION_PROMPT = """Translate the values of the JSON object below into the language \
identified by the locale code "{target_language}".

Rules:
- Keep every key exactly as provided; translate values only.
- Preserve placeholders such as {{name}}, {{{{count}}}}, %s, %d, $1 and ICU plural syntax.
- Preserve HTML tags, markdown formatting, line breaks and surrounding whitespace.
- Copy tokens shaped like __PGK_CODE_BLOCK_0__ verbatim.
- Respond with a single JSON object that has the same keys.

{json_batch}"""


def build_translation_prompt(batch: TranslationBatch, target_language: str) -> str:
    return TRANSLATION_PROMPT.format(
        target_language=target_language,
        json_batch=json.dumps(batch, ensure_ascii=False, indent=2),
    )


def strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def parse_translation_response(text: Optional[str]) -> TranslationBatch:
    """Parse raw model output into a key -> translated text mapping."""

    if not text or not text.strip():
        raise ResponseFormatError("Empty response from translation provider.")

    cleaned = strip_code_fence(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseFormatError(
            f"Translation provider returned invalid JSON: {exc}"
        ) from exc

    if not isinstance(payload, dict):
        raise ResponseFormatError(
            "Translation provider response malformed: expected a JSON object."
        )
    return {str(key): value for key, value in payload.items() if isinstance(value, str)}


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"

    @abstractmethod
    def translate_batch(
        self,
        batch: TranslationBatch,
        target_language: str,
    ) -> TranslationBatch:
        """Translate the values of ``batch``; keys come back unchanged."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "Echo"

    def translate_batch(
        self,
        batch: TranslationBatch,
        target_language: str,
    ) -> TranslationBatch:
        return dict(batch)


class ChatTranslationProvider(TranslationProvider):
    """Shared prompt/response handling for chat-style model APIs."""

    DEFAULT_MODEL = ""
    SDK_HINT = ""

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str | None = None,
        debug: bool = False,
    ) -> None:
        if not api_key:
            raise TranslationProviderConfigurationError(
                f"{self.name} configuration missing. Provide an API key or choose a "
                "different provider."
            )
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.debug = debug
        self._client = self._build_client()

    @abstractmethod
    def _build_client(self) -> Any:
        """Instantiate the vendor SDK client."""

    @abstractmethod
    def _complete(self, *, system_prompt: str, prompt: str) -> str | None:
        """Send one prompt and return the raw text answer."""

    def translate_batch(
        self,
        batch: TranslationBatch,
        target_language: str,
    ) -> TranslationBatch:
        if not batch:
            return {}

        prompt = build_translation_prompt(batch, target_language)
        self._log_debug("provider.request.prompt", prompt)
        try:
            text = self._complete(system_prompt=SYSTEM_PROMPT, prompt=prompt)
        except TranslationProviderError:
            raise
        except Exception as exc:  # pragma: no cover - network call
            raise self._wrap_error(exc) from exc
        self._log_debug("provider.response.text", text)

        mapping = parse_translation_response(text)
        self._log_debug("provider.response.mapping", mapping)
        return mapping

    def _wrap_error(self, exc: Exception) -> TranslationProviderError:
        status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
        message = f"{self.name} API error: {exc}"
        if status == 429 or "429" in str(exc):
            return RateLimitError(f"{self.name} API error: 429 rate limited ({exc})")
        return TranslationProviderError(message)

    def _missing_sdk(self) -> TranslationProviderConfigurationError:
        return TranslationProviderConfigurationError(
            f"{self.name} Python SDK not installed. Install with `pip install {self.SDK_HINT}`."
        )

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not getattr(self, "debug", False):
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[polyglot-keeper][provider-debug] {label}:\n{message}", file=sys.stderr)


class OpenAITranslationProvider(ChatTranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "OpenAI"
    DEFAULT_MODEL = "gpt-4o-mini"
    SDK_HINT = "openai"

    def _build_client(self) -> Any:
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise self._missing_sdk() from exc
        return OpenAI(api_key=self.api_key)

    def _complete(self, *, system_prompt: str, prompt: str) -> str | None:
        response = self._client.chat.completions.create(
            model=self.model,
            temperature=0.1,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        choices = getattr(response, "choices", None) or []
        for choice in choices:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return str(content)
        return None


class AnthropicTranslationProvider(ChatTranslationProvider):
    """Translation provider that uses the Anthropic messages API."""

    name = "Anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-5"
    SDK_HINT = "anthropic"
    MAX_TOKENS = 8192

    def _build_client(self) -> Any:
        try:
            import anthropic  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise self._missing_sdk() from exc
        return anthropic.Anthropic(api_key=self.api_key)

    def _complete(self, *, system_prompt: str, prompt: str) -> str | None:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            str(block.text)
            for block in getattr(response, "content", None) or []
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts) or None


class GeminiTranslationProvider(ChatTranslationProvider):
    """Translation provider that uses Google Gemini models."""

    name = "Gemini"
    DEFAULT_MODEL = "gemini-flash-latest"
    SDK_HINT = "google-genai"

    def _build_client(self) -> Any:
        try:
            from google import genai  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise self._missing_sdk() from exc
        return genai.Client(api_key=self.api_key)

    def _complete(self, *, system_prompt: str, prompt: str) -> str | None:
        from google.genai import types  # type: ignore

        response = self._client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                response_mime_type="application/json",
            ),
        )
        return getattr(response, "text", None)


ProviderFactory = Callable[..., TranslationProvider]

PROVIDER_FACTORIES: Dict[str, ProviderFactory] = {
    "gemini": GeminiTranslationProvider,
    "openai": OpenAITranslationProvider,
    "anthropic": AnthropicTranslationProvider,
    "echo": lambda **_: EchoTranslationProvider(),
}

PROVIDER_ALIASES = {
    "google": "gemini",
    "gpt": "openai",
    "claude": "anthropic",
    "noop": "echo",
    "mock": "echo",
}

DEFAULT_MODELS = {
    "gemini": GeminiTranslationProvider.DEFAULT_MODEL,
    "openai": OpenAITranslationProvider.DEFAULT_MODEL,
    "anthropic": AnthropicTranslationProvider.DEFAULT_MODEL,
    "echo": "echo",
}

KEYLESS_PROVIDERS = frozenset({"echo"})


def normalise_provider_name(name: str | None) -> str:
    normalized = (name or "gemini").strip().lower().replace("_", "-")
    return PROVIDER_ALIASES.get(normalized, normalized)


def default_model(name: str) -> str:
    return DEFAULT_MODELS.get(normalise_provider_name(name), "")


def build_provider(
    name: str | None,
    *,
    api_key: str | None = None,
    model: str | None = None,
    debug: bool = False,
    factories: Optional[Dict[str, ProviderFactory]] = None,
) -> TranslationProvider:
    """Factory to create providers by name."""

    registry = factories if factories is not None else PROVIDER_FACTORIES
    normalized = normalise_provider_name(name)
    factory = registry.get(normalized)
    if factory is None:
        raise TranslationProviderConfigurationError(
            f"Unknown translation provider '{name}'. "
            f"Available providers: {', '.join(sorted(registry))}."
        )
    return factory(api_key=api_key, model=model, debug=debug)
