"""Streaming AI summary client.

The summary endpoint answers with server-sent events. Every event is carried
on a ``data:`` line as a JSON object whose ``event`` member is one of
``status``, ``delta``, ``complete`` or ``error``. Chunks from the transport do
not respect line boundaries, so partial lines are buffered until their newline
arrives.

Only one request is ever live. Starting a new one cancels the previous one and
waits for it to unwind, and a request whose token was cancelled never writes
to ``WizardState.ai_summary``.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from .errors import NetworkError, StreamError
from .forms import IntakeSummaryPayload
from .models import WizardState

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/generate-summary/stream"
FALLBACK_PATH = "/api/generate-summary"
FRAME_PREFIX = "data:"
CONSENT_REQUIRED_MESSAGE = "Please select the consent checkbox before generating an AI summary."
EMPTY_SUMMARY_MESSAGE = "AI summary was empty."
GENERIC_FAILURE_MESSAGE = "AI summary failed. Please try again."

StatusListener = Callable[[str], None]
DeltaListener = Callable[[str, str], None]


def _canonical(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _canonical(item) for key, item in value.items()}
    if isinstance(value, list):
        items = [_canonical(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    return value


def summary_fingerprint(state: WizardState) -> str:
    """Hash of the summary request body, independent of selection order."""
    body = _canonical(IntakeSummaryPayload.from_state(state).as_request_body())
    encoded = json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class SseFrameBuffer:
    def __init__(self, prefix: str = FRAME_PREFIX) -> None:
        self.prefix = prefix
        self._buffer = ""

    def feed(self, chunk: str) -> list[dict[str, Any]]:
        self._buffer += chunk
        complete, _, self._buffer = self._buffer.rpartition("\n")
        if not complete:
            return []
        return self._parse_lines(complete.split("\n"))

    def flush(self) -> list[dict[str, Any]]:
        remaining, self._buffer = self._buffer, ""
        return self._parse_lines([remaining]) if remaining else []

    def _parse_lines(self, lines: list[str]) -> list[dict[str, Any]]:
        frames: list[dict[str, Any]] = []
        for raw_line in lines:
            frame = self._parse_line(raw_line.rstrip("\r"))
            if frame is not None:
                frames.append(frame)
        return frames

    def _parse_line(self, line: str) -> dict[str, Any] | None:
        if not line.startswith(self.prefix):
            return None
        raw = line[len(self.prefix):].strip()
        if not raw:
            return None
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed summary frame: %.120s", raw)
            return None
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.debug("Skipping summary frame without an event: %.120s", raw)
            return None
        return frame


@dataclass(frozen=True)
class SummaryOutcome:
    status: str
    content: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status in {"complete", "cached"}


class CancelToken:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _ActiveRequest:
    token: CancelToken
    task: "asyncio.Task[SummaryOutcome]"
    fingerprint: str


def _error_from_body(body: bytes | str, status_code: int) -> str:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError, ValueError):
        payload = None
    if isinstance(payload, dict):
        message = payload.get("error") or payload.get("detail") or payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return f"Summary request failed with status {status_code}."


class AiSummaryStreamer:
    def __init__(
        self,
        state: WizardState,
        client: httpx.AsyncClient,
        *,
        base_url: str = "",
        use_streaming: bool = True,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.state = state
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.use_streaming = use_streaming
        self.on_change = on_change
        self.partial_content = ""
        self.last_status_message = ""
        self._active: _ActiveRequest | None = None
        self._status_listeners: list[StatusListener] = []
        self._delta_listeners: list[DeltaListener] = []

    @property
    def in_flight(self) -> bool:
        return self._active is not None

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def add_delta_listener(self, listener: DeltaListener) -> None:
        self._delta_listeners.append(listener)

    async def generate(self, force: bool = False, *, auto: bool = False) -> SummaryOutcome:
        summary = self.state.ai_summary
        if not self.state.consent_given:
            if auto:
                return SummaryOutcome(status="skipped")
            await self.cancel_and_wait()
            summary.error_message = CONSENT_REQUIRED_MESSAGE
            self._changed()
            return SummaryOutcome(status="error", error=CONSENT_REQUIRED_MESSAGE)

        fingerprint = summary_fingerprint(self.state)
        if not force:
            if summary.content and not summary.error_message and summary.payload_fingerprint == fingerprint:
                return SummaryOutcome(status="cached", content=summary.content)
            active = self._active
            if active is not None and active.fingerprint == fingerprint:
                return await self._wait(active)

        await self.cancel_and_wait()
        payload = IntakeSummaryPayload.from_state(self.state).as_request_body()
        token = CancelToken()
        self.partial_content = ""
        summary.in_flight = True
        summary.error_message = ""
        task = asyncio.create_task(self._run(payload, fingerprint, token))
        request = _ActiveRequest(token=token, task=task, fingerprint=fingerprint)
        self._active = request
        return await self._wait(request)

    def cancel(self) -> bool:
        request = self._active
        if request is None:
            return False
        request.token.cancel()
        request.task.cancel()
        self._active = None
        self.state.ai_summary.in_flight = False
        logger.info("AI summary request cancelled.")
        return True

    async def cancel_and_wait(self) -> None:
        request = self._active
        if not self.cancel() or request is None:
            return
        await asyncio.wait({request.task})

    async def _wait(self, request: _ActiveRequest) -> SummaryOutcome:
        try:
            await asyncio.wait({request.task})
        except asyncio.CancelledError:
            if self._active is request:
                self.cancel()
            raise
        if request.task.cancelled():
            return SummaryOutcome(status="cancelled")
        return request.task.result()

    async def _run(self, payload: dict[str, Any], fingerprint: str, token: CancelToken) -> SummaryOutcome:
        try:
            outcome = None
            if self.use_streaming:
                outcome = await self._stream(payload, token)
            if outcome is None:
                outcome = await self._complete(payload)
        except NetworkError as exc:
            logger.warning("AI summary request failed: %s", exc)
            outcome = SummaryOutcome(status="error", error=str(exc) or GENERIC_FAILURE_MESSAGE)
        return self._finish(outcome, fingerprint, token)

    async def _stream(self, payload: dict[str, Any], token: CancelToken) -> SummaryOutcome | None:
        buffer = SseFrameBuffer()
        accumulated: list[str] = []
        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}{STREAM_PATH}",
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code in {404, 405}:
                    logger.info("Streaming summary endpoint unavailable; using fallback.")
                    return None
                if response.status_code >= 400:
                    body = await response.aread()
                    raise StreamError(_error_from_body(body, response.status_code))
                async for chunk in response.aiter_text():
                    for frame in buffer.feed(chunk):
                        outcome = self._apply_frame(frame, accumulated, token)
                        if outcome is not None:
                            return outcome
                    if token.cancelled:
                        return SummaryOutcome(status="cancelled")
                for frame in buffer.flush():
                    outcome = self._apply_frame(frame, accumulated, token)
                    if outcome is not None:
                        return outcome
        except httpx.HTTPError as exc:
            raise NetworkError(f"Summary stream failed: {exc}") from exc

        content = "".join(accumulated)
        if not content.strip():
            return SummaryOutcome(status="error", error=EMPTY_SUMMARY_MESSAGE)
        return SummaryOutcome(status="complete", content=content)

    def _apply_frame(
        self,
        frame: dict[str, Any],
        accumulated: list[str],
        token: CancelToken,
    ) -> SummaryOutcome | None:
        event = frame["event"]
        if event == "status":
            message = str(frame.get("message") or "")
            if not token.cancelled:
                self.last_status_message = message
                for listener in self._status_listeners:
                    listener(message)
            return None
        if event == "delta":
            text = frame.get("html") or frame.get("text") or frame.get("delta")
            if isinstance(text, str) and text:
                accumulated.append(text)
                if not token.cancelled:
                    self.partial_content = "".join(accumulated)
                    for listener in self._delta_listeners:
                        listener(text, self.partial_content)
            return None
        if event == "complete":
            final = frame.get("html") or frame.get("text")
            content = final if isinstance(final, str) and final else "".join(accumulated)
            if not content.strip():
                return SummaryOutcome(status="error", error=EMPTY_SUMMARY_MESSAGE)
            return SummaryOutcome(status="complete", content=content)
        if event == "error":
            message = frame.get("message")
            return SummaryOutcome(
                status="error",
                error=message.strip() if isinstance(message, str) and message.strip() else GENERIC_FAILURE_MESSAGE,
            )
        logger.debug("Ignoring unknown summary event '%s'.", event)
        return None

    async def _complete(self, payload: dict[str, Any]) -> SummaryOutcome:
        try:
            response = await self.client.post(f"{self.base_url}{FALLBACK_PATH}", json=payload)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Summary request failed: {exc}") from exc
        if response.status_code >= 400:
            raise NetworkError(_error_from_body(response.content, response.status_code))
        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError("Summary service returned invalid JSON.") from exc
        if isinstance(body, dict) and body.get("error"):
            raise NetworkError(str(body["error"]))
        summary = str(body.get("summary") or "") if isinstance(body, dict) else ""
        if not summary.strip():
            return SummaryOutcome(status="error", error=EMPTY_SUMMARY_MESSAGE)
        return SummaryOutcome(status="complete", content=summary.strip())

    def _finish(self, outcome: SummaryOutcome, fingerprint: str, token: CancelToken) -> SummaryOutcome:
        request = self._active
        if token.cancelled or request is None or request.token is not token:
            return SummaryOutcome(status="cancelled")
        self._active = None
        summary = self.state.ai_summary
        summary.in_flight = False
        if outcome.status == "complete":
            summary.content = outcome.content
            summary.error_message = ""
            summary.payload_fingerprint = fingerprint
        else:
            summary.content = ""
            summary.error_message = outcome.error or GENERIC_FAILURE_MESSAGE
            summary.payload_fingerprint = ""
        self.partial_content = ""
        self._changed()
        return outcome

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
