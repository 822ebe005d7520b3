from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator

from .errors import StorageError
from .models import WizardState
from .persistence import SnapshotAdapter
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

StatusListener = Callable[["SaveStatus"], None]

DEFAULT_DEBOUNCE_SECONDS = 0.8
DEFAULT_INTERVAL_SECONDS = 30.0


@dataclass(frozen=True)
class SaveStatus:
    kind: str = "idle"
    saved_at: datetime | None = None
    reason: str | None = None

    @classmethod
    def saving(cls) -> "SaveStatus":
        return cls(kind="saving")

    @classmethod
    def saved(cls, saved_at: datetime) -> "SaveStatus":
        return cls(kind="saved", saved_at=saved_at)

    @classmethod
    def failed(cls, reason: str) -> "SaveStatus":
        return cls(kind="failed", reason=reason)

    @classmethod
    def restored(cls, saved_at: datetime | None) -> "SaveStatus":
        return cls(kind="restored", saved_at=saved_at)


class AutosaveController:
    def __init__(
        self,
        adapter: SnapshotAdapter,
        state: WizardState,
        scheduler: Scheduler,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self.adapter = adapter
        self.state = state
        self.scheduler = scheduler
        self.debounce_seconds = debounce_seconds
        self.interval_seconds = interval_seconds
        self._pending: TimerHandle | None = None
        self._interval: TimerHandle | None = None
        self._suppress_depth = 0
        self._dirty = False
        self._listeners: list[StatusListener] = []
        self.status = SaveStatus()

    @property
    def is_suppressed(self) -> bool:
        return self._suppress_depth > 0

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def mark_dirty(self) -> None:
        if not self.is_suppressed:
            self._dirty = True

    def mark_clean(self) -> None:
        self._dirty = False

    def schedule(self) -> None:
        if self.is_suppressed:
            return
        self.mark_dirty()
        self.cancel_pending()
        self._pending = self.scheduler.call_later(self.debounce_seconds, self._on_debounce)
        self._set_status(SaveStatus.saving())

    def start(self) -> None:
        if self._interval is None:
            self._interval = self.scheduler.call_later(self.interval_seconds, self._on_interval)

    def stop(self) -> None:
        self.cancel_pending()
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def flush(self) -> SaveStatus:
        self.cancel_pending()
        return self.save_now()

    def save_now(self) -> SaveStatus:
        try:
            saved_at = self.adapter.write(self.state)
        except StorageError as exc:
            logger.warning("Autosave failed: %s", exc)
            self._set_status(SaveStatus.failed(str(exc)))
            return self.status
        self.state.saved_at = saved_at
        self._dirty = False
        self._set_status(SaveStatus.saved(saved_at))
        return self.status

    def reset_status(self, status: SaveStatus | None = None) -> None:
        self._set_status(status or SaveStatus())

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        self._suppress_depth += 1
        self.cancel_pending()
        try:
            yield
        finally:
            self._suppress_depth -= 1

    def _on_debounce(self) -> None:
        self._pending = None
        if self.is_suppressed:
            return
        self.save_now()

    def _on_interval(self) -> None:
        self._interval = self.scheduler.call_later(self.interval_seconds, self._on_interval)
        # Nothing changed since the last write, or a draft is still awaiting a resume decision.
        if self.is_suppressed or not self._dirty:
            return
        self.save_now()

    def _set_status(self, status: SaveStatus) -> None:
        self.status = status
        for listener in self._listeners:
            listener(status)
