"""LLM completion provider abstractions."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from .config import LLMConfig


class LLMError(RuntimeError):
    """Raised when the completion endpoint cannot produce text."""


class CompletionProvider:
    """Single-turn text completion: one prompt in, one string out."""

    def __init__(
        self,
        config: LLMConfig,
        logger: logging.Logger | None = None,
        *,
        log_messages: bool = False,
    ) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)
        self._log_messages = log_messages

    async def complete(self, prompt: str, *, temperature: float | None = None, max_tokens: int | None = None) -> str:
        payload = self._build_payload(
            prompt,
            self.config.temperature if temperature is None else temperature,
            self.config.max_tokens if max_tokens is None else max_tokens,
        )
        if self._log_messages:
            self._logger.info("LLM prompt: %s", prompt)
        try:
            text = await asyncio.to_thread(self._call_api, payload)
        except LLMError:
            raise
        except (urllib.error.URLError, OSError, ValueError) as exc:
            self._logger.exception("LLM call failed: %s", exc)
            raise LLMError(f"LLM request failed: {exc}") from exc
        if self._log_messages:
            self._logger.info("LLM response: %s", text)
        return text

    def _build_payload(self, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
        raise NotImplementedError

    def _call_api(self, payload: dict[str, Any]) -> str:
        raise NotImplementedError


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: int, label: str) -> dict[str, Any]:
    data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url=url,
        data=data,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise LLMError(f"{label} HTTP error: {exc.code}") from exc
    parsed = json.loads(body)
    if not isinstance(parsed, dict):
        raise LLMError(f"{label} returned an unexpected payload")
    return parsed


def _chat_content(parsed: dict[str, Any]) -> str:
    choices = parsed.get("choices") or []
    if not isinstance(choices, list) or not choices:
        raise LLMError("LLM response missing choices")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not content:
        raise LLMError("LLM response missing content")
    return str(content)


class OpenAIProvider(CompletionProvider):
    """Call OpenAI-compatible chat completion endpoints."""

    def _build_payload(self, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.config.openai_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _call_api(self, payload: dict[str, Any]) -> str:
        if not self.config.openai_api_key:
            raise LLMError("OPENAI_API_KEY is not set")
        parsed = _post_json(
            f"{self.config.openai_base_url.rstrip('/')}/chat/completions",
            payload,
            {"Authorization": f"Bearer {self.config.openai_api_key}"},
            self.config.openai_timeout,
            "OpenAI",
        )
        return _chat_content(parsed)


class OpenRouterProvider(CompletionProvider):
    """OpenAI-shaped chat completions routed through OpenRouter."""

    def _build_payload(self, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.config.openrouter_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _call_api(self, payload: dict[str, Any]) -> str:
        api_key = self.config.openrouter_api_key or self.config.openai_api_key
        if not api_key:
            raise LLMError("OPENROUTER_API_KEY is not set")
        headers = {"Authorization": f"Bearer {api_key}"}
        if self.config.openrouter_referer:
            headers["HTTP-Referer"] = self.config.openrouter_referer
        if self.config.openrouter_title:
            headers["X-Title"] = self.config.openrouter_title
        parsed = _post_json(
            f"{self.config.openrouter_base_url.rstrip('/')}/chat/completions",
            payload,
            headers,
            self.config.openrouter_timeout,
            "OpenRouter",
        )
        return _chat_content(parsed)


class GeminiProvider(CompletionProvider):
    """Call Google Gemini (Generative Language) models."""

    def _build_payload(self, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}],
                }
            ],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

    def _call_api(self, payload: dict[str, Any]) -> str:
        if not self.config.gemini_api_key:
            raise LLMError("GEMINI_API_KEY is not set")
        model = (self.config.gemini_model or "").strip()
        if not model:
            raise LLMError("GEMINI_MODEL is not set")
        base_url = self.config.gemini_base_url.rstrip("/")
        query = urllib.parse.urlencode({"key": self.config.gemini_api_key})
        parsed = _post_json(
            f"{base_url}/models/{model}:generateContent?{query}",
            payload,
            {"x-goog-api-key": self.config.gemini_api_key},
            self.config.gemini_timeout,
            "Gemini",
        )

        candidates = parsed.get("candidates") or []
        for candidate in candidates if isinstance(candidates, list) else []:
            if not isinstance(candidate, dict):
                continue
            content = candidate.get("content") or {}
            if not isinstance(content, dict):
                continue
            parts = content.get("parts") or []
            if not isinstance(parts, list):
                continue
            for part in parts:
                if isinstance(part, dict):
                    text = part.get("text")
                    if isinstance(text, str) and text.strip():
                        return text

        prompt_feedback = parsed.get("promptFeedback")
        if isinstance(prompt_feedback, dict):
            block_reason = prompt_feedback.get("blockReason")
            if block_reason:
                raise LLMError(f"Gemini blocked prompt: {block_reason}")
        raise LLMError("LLM response missing content")


def build_completion_provider(
    config: LLMConfig,
    logger: logging.Logger | None = None,
    *,
    log_messages: bool = False,
) -> CompletionProvider:
    provider = (config.provider or "").strip().lower()
    if provider == "gemini":
        return GeminiProvider(config, logger, log_messages=log_messages)
    if provider == "openrouter":
        return OpenRouterProvider(config, logger, log_messages=log_messages)
    return OpenAIProvider(config, logger, log_messages=log_messages)
