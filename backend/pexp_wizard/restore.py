from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator

from .autosave import AutosaveController, SaveStatus
from .errors import StorageError
from .models import AiSummaryState, WizardState
from .navigator import StepNavigator
from .pain_points import PainPointRegistry
from .persistence import SnapshotAdapter, from_snapshot
from .summary_stream import AiSummaryStreamer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResumeOffer:
    saved_at: datetime | None
    current_step: int
    pain_point_count: int
    answered_fields: int


class ResumeOrchestrator:
    def __init__(
        self,
        adapter: SnapshotAdapter,
        state: WizardState,
        navigator: StepNavigator,
        registry: PainPointRegistry,
        autosave: AutosaveController,
        streamer: AiSummaryStreamer,
    ) -> None:
        self.adapter = adapter
        self.state = state
        self.navigator = navigator
        self.registry = registry
        self.autosave = autosave
        self.streamer = streamer
        self.rehydrating = False
        self.offer: ResumeOffer | None = None
        self._snapshot: dict[str, Any] | None = None

    @property
    def banner_visible(self) -> bool:
        return self.offer is not None

    def initialize(self) -> ResumeOffer | None:
        try:
            snapshot = self.adapter.read()
        except StorageError as exc:
            logger.warning("Could not check for a saved draft: %s", exc)
            self.autosave.reset_status(SaveStatus.failed(str(exc)))
            return None
        if snapshot is None:
            return None
        draft = from_snapshot(snapshot)
        self._snapshot = snapshot
        self.offer = ResumeOffer(
            saved_at=draft.saved_at,
            current_step=draft.current_step,
            pain_point_count=len(draft.pain_points),
            answered_fields=sum(1 for value in draft.fields.values() if value),
        )
        logger.info("Found saved draft at step %s.", draft.current_step)
        return self.offer

    def continue_draft(self) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False
        self.streamer.cancel()
        draft = from_snapshot(snapshot)
        with self._rehydrate():
            self.state.fields.clear()
            self.state.fields.update(draft.fields)
            self.registry.restore(draft.pain_points.values())
            self.state.ai_summary = AiSummaryState(
                content=draft.ai_summary.content,
                error_message=draft.ai_summary.error_message,
                payload_fingerprint=draft.ai_summary.payload_fingerprint,
            )
            self.state.saved_at = draft.saved_at
            self.navigator.restore_to(draft.current_step)
        self.autosave.mark_clean()
        self.autosave.reset_status(SaveStatus.restored(draft.saved_at))
        self._snapshot = None
        self.offer = None
        return True

    def start_over(self) -> None:
        self.streamer.cancel()
        self.autosave.cancel_pending()
        self.autosave.mark_clean()
        try:
            self.adapter.clear()
        except StorageError as exc:
            logger.warning("Could not discard saved draft: %s", exc)
        with self._rehydrate():
            self.state.reset()
            self.registry.clear()
            self.navigator.reset()
        self.autosave.reset_status()
        self._snapshot = None
        self.offer = None

    def dismiss(self) -> None:
        self.offer = None

    @contextmanager
    def _rehydrate(self) -> Iterator[None]:
        self.rehydrating = True
        try:
            with self.autosave.suppressed():
                yield
        finally:
            self.rehydrating = False
