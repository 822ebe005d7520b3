from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Protocol

from .errors import QuotaExceededError, StorageError
from .models import TOTAL_STEPS, VIEWS, AiSummaryState, PainPoint, WizardState, validate_intensity

logger = logging.getLogger(__name__)

STORAGE_KEY = "pexp_wizard_autosave_v2"
RESERVED_KEYS = frozenset(
    {
        "selectedAreas",
        "painPoints",
        "aiSummary",
        "aiSummaryError",
        "aiSummaryFingerprint",
        "currentStep",
        "_savedAt",
    }
)


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.write_count = 0

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and len(value.encode("utf-8")) > self.quota_bytes:
            raise QuotaExceededError(f"Storage quota of {self.quota_bytes} bytes exceeded.")
        self._items[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SQLiteKeyValueStore:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS drafts (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                )
                """
            )

    @property
    def path(self) -> str:
        return str(self._path)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._path), timeout=30.0)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_item(self, key: str) -> str | None:
        with self.connection() as conn:
            row = conn.execute("SELECT value FROM drafts WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO drafts (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, now),
            )

    def remove_item(self, key: str) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM drafts WHERE key = ?", (key,))


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_snapshot(state: WizardState, saved_at: datetime | None = None) -> dict[str, Any]:
    snapshot: dict[str, Any] = {}
    for name, value in state.fields.items():
        snapshot[name] = list(value) if isinstance(value, list) else value
    snapshot["selectedAreas"] = state.selected_areas
    snapshot["painPoints"] = [point.as_snapshot() for point in state.pain_points.values()]
    snapshot["aiSummary"] = state.ai_summary.content
    snapshot["aiSummaryError"] = state.ai_summary.error_message
    snapshot["aiSummaryFingerprint"] = state.ai_summary.payload_fingerprint
    snapshot["currentStep"] = state.current_step
    stamp = saved_at or state.saved_at
    snapshot["_savedAt"] = _iso(stamp) if stamp else None
    return snapshot


def _pain_point_from_snapshot(raw: Any) -> PainPoint | None:
    if not isinstance(raw, dict):
        return None
    try:
        view = str(raw["view"])
        if view not in VIEWS:
            return None
        region = str(raw["region"])
        x_percent = float(raw["xPercent"])
        y_percent = float(raw["yPercent"])
        intensity = validate_intensity(int(raw.get("intensity", 5)))
    except (KeyError, TypeError, ValueError):
        return None
    original_name = str(raw.get("originalName") or region)
    return PainPoint(
        key=str(raw.get("key") or f"{view}|{original_name}|{region}"),
        view=view,
        region=region,
        original_name=original_name,
        display_name=str(raw.get("displayName") or region),
        x_percent=min(100.0, max(0.0, x_percent)),
        y_percent=min(100.0, max(0.0, y_percent)),
        intensity=intensity,
    )


def from_snapshot(snapshot: dict[str, Any]) -> WizardState:
    state = WizardState()
    for name, value in snapshot.items():
        if name in RESERVED_KEYS or value is None:
            continue
        if isinstance(value, list):
            state.fields[name] = [str(item) for item in value]
        elif isinstance(value, bool):
            state.fields[name] = "on" if value else ""
        else:
            state.fields[name] = str(value)

    for raw in snapshot.get("painPoints") or []:
        point = _pain_point_from_snapshot(raw)
        if point is None:
            logger.warning("Skipping malformed pain point in snapshot: %r", raw)
            continue
        state.pain_points[point.key] = point

    state.ai_summary = AiSummaryState(
        content=str(snapshot.get("aiSummary") or ""),
        error_message=str(snapshot.get("aiSummaryError") or ""),
        payload_fingerprint=str(snapshot.get("aiSummaryFingerprint") or ""),
    )
    try:
        step = int(snapshot.get("currentStep") or 1)
    except (TypeError, ValueError):
        step = 1
    state.current_step = min(TOTAL_STEPS, max(1, step))
    state.saved_at = _parse_iso(snapshot.get("_savedAt"))
    return state


class SnapshotAdapter:
    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY) -> None:
        self.store = store
        self.key = key

    def read(self) -> dict[str, Any] | None:
        try:
            raw = self.store.get_item(self.key)
        except Exception as exc:
            raise StorageError(f"Failed to read draft: {exc}") from exc
        if not raw:
            return None
        try:
            snapshot = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable draft snapshot: %s", exc)
            return None
        if not isinstance(snapshot, dict):
            logger.warning("Ignoring draft snapshot with unexpected shape: %s", type(snapshot).__name__)
            return None
        return snapshot

    def exists(self) -> bool:
        return self.read() is not None

    def write(self, state: WizardState) -> datetime:
        saved_at = datetime.now(timezone.utc)
        payload = json.dumps(to_snapshot(state, saved_at), ensure_ascii=False)
        try:
            self.store.set_item(self.key, payload)
        except QuotaExceededError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to write draft: {exc}") from exc
        return saved_at

    def clear(self) -> None:
        try:
            self.store.remove_item(self.key)
        except Exception as exc:
            raise StorageError(f"Failed to clear draft: {exc}") from exc
