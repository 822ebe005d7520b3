from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Iterator

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
STREAM_MAX_TOKENS = 1500
COMPLETE_MAX_TOKENS = 1024


class SummaryProviderError(RuntimeError):
    pass


@dataclass(frozen=True)
class SummaryProviderConfig:
    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = "https://api.anthropic.com/v1"
    api_version: str = "2023-06-01"
    timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "SummaryProviderConfig | None":
        api_key = (os.getenv("CLAUDE_API_KEY") or "").strip()
        if not api_key:
            return None
        model = (os.getenv("CLAUDE_SUMMARY_MODEL") or os.getenv("CLAUDE_MODEL") or DEFAULT_MODEL).strip()
        try:
            timeout_seconds = float(os.getenv("PEXP_SUMMARY_TIMEOUT_SECONDS", "60"))
        except ValueError:
            timeout_seconds = 60.0
        return cls(
            api_key=api_key,
            model=model,
            base_url=os.getenv("ANTHROPIC_API_BASE_URL", "https://api.anthropic.com/v1").rstrip("/"),
            api_version=os.getenv("ANTHROPIC_API_VERSION", "2023-06-01"),
            timeout_seconds=timeout_seconds,
        )


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


def _coerce_anthropic_text(response_json: dict[str, Any]) -> str:
    content = response_json.get("content")
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "text":
            continue
        text_value = item.get("text")
        if isinstance(text_value, str):
            parts.append(text_value)
    return "".join(parts).strip()


class AnthropicSummaryProvider:
    """Clinical summary generation over the Anthropic Messages API."""

    def __init__(self, config: SummaryProviderConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.config.timeout_seconds, connect=8.0),
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, max_tokens: int, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if stream:
            payload["stream"] = True
        return payload

    def stream_summary(self, prompt: str) -> Iterator[str]:
        """Yield text deltas as the model produces them."""
        url = f"{self.config.base_url}/messages"
        with self._client() as client:
            with client.stream(
                "POST",
                url,
                headers=self._headers(),
                json=self._payload(prompt, STREAM_MAX_TOKENS, stream=True),
            ) as response:
                if response.status_code >= 400:
                    response.read()
                    raise SummaryProviderError(_provider_error_message(response))
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    try:
                        event = json.loads(line[len("data:"):].strip())
                    except json.JSONDecodeError:
                        logger.debug("Skipping malformed provider frame: %r", line[:120])
                        continue
                    if not isinstance(event, dict):
                        continue
                    event_type = event.get("type")
                    if event_type == "content_block_delta":
                        delta = event.get("delta") or {}
                        if delta.get("type") == "text_delta" and delta.get("text"):
                            yield str(delta["text"])
                    elif event_type == "message_stop":
                        return
                    elif event_type == "error":
                        error = event.get("error") or {}
                        raise SummaryProviderError(str(error.get("message") or "AI provider stream error."))

    def complete_summary(self, prompt: str) -> str:
        with self._client() as client:
            response = client.post(
                f"{self.config.base_url}/messages",
                headers=self._headers(),
                json=self._payload(prompt, COMPLETE_MAX_TOKENS, stream=False),
            )
        if response.status_code >= 400:
            raise SummaryProviderError(_provider_error_message(response))
        return _coerce_anthropic_text(response.json())
