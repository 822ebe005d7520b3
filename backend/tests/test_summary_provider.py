from __future__ import annotations

import json

import httpx
import pytest

from pexp_tools.summary_provider import (
    AnthropicSummaryProvider,
    SummaryProviderConfig,
    SummaryProviderError,
)


def _anthropic_stream(*events: dict) -> str:
    return "".join(f"event: {event['type']}\ndata: {json.dumps(event)}\n\n" for event in events)


def _provider(handler) -> AnthropicSummaryProvider:
    config = SummaryProviderConfig(api_key="test-key", base_url="https://anthropic.test/v1")
    return AnthropicSummaryProvider(config, transport=httpx.MockTransport(handler))


def test_stream_summary_yields_text_deltas():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        body = _anthropic_stream(
            {"type": "message_start", "message": {"id": "msg_1"}},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "<h3>Clinical "}},
            {"type": "ping"},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Overview</h3>"}},
            {"type": "message_stop"},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "ignored"}},
        )
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    chunks = list(_provider(handler).stream_summary("prompt text"))

    assert chunks == ["<h3>Clinical ", "Overview</h3>"]
    request = captured[0]
    assert request.url.path == "/v1/messages"
    assert request.headers["x-api-key"] == "test-key"
    payload = json.loads(request.content)
    assert payload["stream"] is True
    assert payload["max_tokens"] == 1500
    assert payload["messages"] == [{"role": "user", "content": "prompt text"}]


def test_stream_summary_raises_on_error_event():
    def handler(request: httpx.Request) -> httpx.Response:
        body = _anthropic_stream(
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "partial"}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )
        return httpx.Response(200, text=body)

    stream = _provider(handler).stream_summary("prompt")

    assert next(stream) == "partial"
    with pytest.raises(SummaryProviderError, match="Overloaded"):
        next(stream)


def test_stream_summary_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"type": "authentication_error", "message": "invalid x-api-key"}})

    with pytest.raises(SummaryProviderError, match="invalid x-api-key"):
        list(_provider(handler).stream_summary("prompt"))


def test_complete_summary_joins_text_blocks():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "stream" not in json.loads(request.content)
        return httpx.Response(
            200,
            json={"content": [{"type": "text", "text": "<p>One</p>"}, {"type": "tool_use"}, {"type": "text", "text": " "}]},
        )

    assert _provider(handler).complete_summary("prompt") == "<p>One</p>"


def test_config_from_env(monkeypatch):
    monkeypatch.delenv("CLAUDE_API_KEY", raising=False)
    assert SummaryProviderConfig.from_env() is None

    monkeypatch.setenv("CLAUDE_API_KEY", " key ")
    monkeypatch.setenv("CLAUDE_SUMMARY_MODEL", "claude-test")
    monkeypatch.setenv("PEXP_SUMMARY_TIMEOUT_SECONDS", "nope")
    config = SummaryProviderConfig.from_env()

    assert config is not None
    assert config.api_key == "key"
    assert config.model == "claude-test"
    assert config.timeout_seconds == 60.0
