from __future__ import annotations

import json
from typing import Any


def parse_sse_events(payload_text: str) -> list[dict[str, Any]]:
    """Split an event-stream body into frames, decoding each JSON data line."""
    events: list[dict[str, Any]] = []
    current: dict[str, Any] = {}
    for raw_line in payload_text.splitlines():
        line = raw_line.rstrip("\r")
        if line.startswith("event: "):
            current["event"] = line[len("event: "):]
        elif line.startswith("data: "):
            current["data"] = json.loads(line[len("data: "):])
        elif not line and current:
            events.append(current)
            current = {}
    if current:
        events.append(current)
    return events


def event_names(events: list[dict[str, Any]]) -> list[str]:
    return [event.get("event", "") for event in events]
