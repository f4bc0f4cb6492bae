"""OpenRouter language-model client.

This service uses the OpenAI Python SDK configured to talk to OpenRouter's
OpenAI-compatible API. It exposes a single text completion call plus helpers
that pull the first JSON object or array out of free-form model output.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")

# OpenRouter is OpenAI-compatible; use the SDK with this base URL.
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

# Optional app attribution headers (recommended by OpenRouter)
OPENROUTER_SITE_URL = os.getenv("OPENROUTER_SITE_URL", "")
OPENROUTER_APP_NAME = os.getenv("OPENROUTER_APP_NAME", "SolarpunkList")

# Model configuration
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "anthropic/claude-sonnet-4")

# Request timeout (seconds)
LLM_TIMEOUT = float(os.getenv("OPENROUTER_TIMEOUT", "60"))

INJECTION_PATTERNS = [
    r"ignore\s+(previous|all|above)\s+instructions",
    r"disregard\s+(previous|all|above)",
    r"forget\s+(everything|all|previous)",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"human\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]


def sanitize_prompt_input(text: str | None, max_length: int = 200) -> str:
    """Truncate untrusted text and redact common prompt-injection phrases."""
    if not text:
        return ""
    text = text[:max_length]
    for pattern in INJECTION_PATTERNS:
        text = re.sub(pattern, "[REDACTED]", text, flags=re.IGNORECASE)
    return text


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.startswith("```")]
        text = "\n".join(lines)
    return text.strip()


def _extract_between(text: str, open_char: str, close_char: str) -> Any | None:
    text = _strip_code_fences(text or "")
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM response as JSON: {e}")
        return None


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Parse the span from the first ``{`` to the last ``}`` as a JSON object."""
    data = _extract_between(text or "", "{", "}")
    return data if isinstance(data, dict) else None


def extract_json_array(text: str | None) -> list[Any] | None:
    """Parse the span from the first ``[`` to the last ``]`` as a JSON array."""
    data = _extract_between(text or "", "[", "]")
    return data if isinstance(data, list) else None


class OpenRouterService:
    """Service for LLM text completions via OpenRouter."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        # Prefer explicit api_key, otherwise env var; strip to avoid hidden whitespace/newlines.
        self.api_key = (api_key or OPENROUTER_API_KEY or "").strip()
        self.model = model or OPENROUTER_MODEL

        # Optional attribution headers (recommended by OpenRouter)
        default_headers: dict[str, str] = {}
        if OPENROUTER_SITE_URL:
            default_headers["HTTP-Referer"] = OPENROUTER_SITE_URL
        if OPENROUTER_APP_NAME:
            default_headers["X-Title"] = OPENROUTER_APP_NAME

        self._client: AsyncOpenAI | None = None
        self._default_headers = default_headers

    @property
    def is_configured(self) -> bool:
        """Check if the API key is configured."""
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Get or create SDK client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=OPENROUTER_BASE_URL,
                default_headers=self._default_headers or None,
                timeout=LLM_TIMEOUT,
                max_retries=1,
            )
        return self._client

    async def close(self) -> None:
        """Close SDK client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0,
    ) -> str | None:
        """Send a single user prompt and return the text reply.

        Returns None when the key is missing, the request fails or times out,
        or the reply carries no text.
        """
        if not self.api_key:
            logger.warning("OpenRouter API key not configured")
            return None

        try:
            client = self._get_client()
            resp = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.exception("OpenRouter SDK request failed: %s", e)
            return None

        if not resp.choices:
            return None
        content = resp.choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            logger.warning("OpenRouter returned no text content")
            return None
        return content.strip()


_openrouter_service: OpenRouterService | None = None


def get_openrouter_service() -> OpenRouterService:
    """Get the singleton OpenRouterService instance."""
    global _openrouter_service
    if _openrouter_service is None:
        _openrouter_service = OpenRouterService()
    return _openrouter_service
