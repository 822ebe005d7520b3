from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

import httpx

from .autosave import AutosaveController, SaveStatus
from .config import WizardConfig
from .errors import FieldError, SubmissionError
from .forms import as_list
from .hotspots import DEFAULT_HOTSPOTS, Hotspot
from .models import STEP_TITLES, FieldValue, PainPoint, WizardState
from .navigator import NavigationResult, StepHooks, StepNavigator
from .pain_points import AlphaMask, ClickOutcome, DiagramBox, PainPointRegistry
from .persistence import (
    RESERVED_KEYS,
    InMemoryKeyValueStore,
    KeyValueStore,
    SnapshotAdapter,
    SQLiteKeyValueStore,
)
from .restore import ResumeOffer, ResumeOrchestrator
from .review import ReviewSection, build_review, render_review_text
from .scheduler import AsyncioScheduler, Scheduler
from .submission import IntakeSubmitter, SubmissionReceipt, build_submission_payload
from .summary_stream import AiSummaryStreamer, SummaryOutcome

logger = logging.getLogger(__name__)

RedFlagListener = Callable[[list[str]], None]


@dataclass(frozen=True)
class SubmitOutcome:
    ok: bool
    receipt: SubmissionReceipt | None = None
    errors: dict[int, list[FieldError]] = field(default_factory=dict)
    message: str = ""


class IntakeWizard:
    def __init__(
        self,
        *,
        config: WizardConfig | None = None,
        store: KeyValueStore | None = None,
        client: httpx.AsyncClient | None = None,
        scheduler: Scheduler | None = None,
        hotspots: dict[str, list[Hotspot]] | None = None,
    ) -> None:
        self.config = config or WizardConfig.from_env()
        if store is None:
            if self.config.draft_db_path:
                store = SQLiteKeyValueStore(self.config.draft_db_path)
            else:
                store = InMemoryKeyValueStore()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.http_timeout_seconds, connect=8.0)
        )

        self.state = WizardState()
        self.adapter = SnapshotAdapter(store)
        self.autosave = AutosaveController(
            self.adapter,
            self.state,
            scheduler or AsyncioScheduler(),
            debounce_seconds=self.config.debounce_seconds,
            interval_seconds=self.config.interval_seconds,
        )
        self.hooks = StepHooks()
        self.navigator = StepNavigator(self.state, hooks=self.hooks)
        self.registry = PainPointRegistry(
            self.state,
            hotspots=hotspots if hotspots is not None else dict(DEFAULT_HOTSPOTS),
            on_change=self.autosave.schedule,
        )
        self.streamer = AiSummaryStreamer(
            self.state,
            self.client,
            base_url=self.config.api_base_url,
            use_streaming=self.config.use_streaming,
            on_change=self.autosave.schedule,
        )
        self.submitter = IntakeSubmitter(self.client, base_url=self.config.api_base_url)
        self.restorer = ResumeOrchestrator(
            self.adapter,
            self.state,
            self.navigator,
            self.registry,
            self.autosave,
            self.streamer,
        )

        self.review: list[ReviewSection] = []
        self.summary_task: asyncio.Task[SummaryOutcome] | None = None
        self._red_flag_listeners: list[RedFlagListener] = []
        self.hooks.add_enter(self._on_enter_step)
        self.hooks.add_leave(self._on_leave_step)

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def step_title(self) -> str:
        return STEP_TITLES[self.state.current_step]

    @property
    def progress_percent(self) -> int:
        return self.navigator.progress_percent()

    @property
    def save_status(self) -> SaveStatus:
        return self.autosave.status

    @property
    def review_text(self) -> str:
        return render_review_text(self.review)

    def add_red_flag_listener(self, listener: RedFlagListener) -> None:
        self._red_flag_listeners.append(listener)

    def start(self) -> ResumeOffer | None:
        offer = self.restorer.initialize()
        self.autosave.start()
        return offer

    def continue_draft(self) -> bool:
        self._drop_summary_task()
        return self.restorer.continue_draft()

    def start_over(self) -> None:
        self._drop_summary_task()
        self.restorer.start_over()
        self.review = []

    def set_field(self, name: str, value: FieldValue) -> None:
        if name in RESERVED_KEYS:
            raise ValueError(f"'{name}' is reserved and cannot be used as a form field.")
        previous = self.state.fields.get(name)
        normalized: FieldValue = [str(item) for item in value] if isinstance(value, list) else str(value)
        self.state.fields[name] = normalized
        if name == "redFlags" and normalized != previous:
            flags = as_list(normalized)
            if flags:
                for listener in self._red_flag_listeners:
                    listener(flags)
        self.autosave.schedule()

    def toggle_choice(self, name: str, value: str, checked: bool) -> None:
        current = as_list(self.state.fields.get(name))
        if checked and value not in current:
            current.append(value)
        elif not checked and value in current:
            current.remove(value)
        self.set_field(name, current)

    def set_consent(self, given: bool) -> None:
        self.set_field("consent", "on" if given else "")

    def click_body_map(
        self,
        view: str,
        x: float,
        y: float,
        box: DiagramBox,
        alpha_mask: AlphaMask | None = None,
    ) -> ClickOutcome:
        return self.registry.click(view, x, y, box, alpha_mask)

    def confirm_pain_point(self, intensity: int | None = None) -> PainPoint:
        return self.registry.confirm(intensity)

    def cancel_pain_point(self) -> None:
        self.registry.cancel_pending()

    def remove_pain_point(self, key: str) -> PainPoint | None:
        return self.registry.remove(key)

    def next_step(self) -> NavigationResult:
        return self.navigator.advance()

    def previous_step(self) -> NavigationResult:
        return self.navigator.retreat()

    def go_to_step(self, step: int) -> NavigationResult:
        return self.navigator.jump_to(step)

    async def generate_summary(self, force: bool = False) -> SummaryOutcome:
        return await self.streamer.generate(force)

    async def submit(self) -> SubmitOutcome:
        failures = self.navigator.validate_all()
        if failures:
            return SubmitOutcome(ok=False, errors=failures, message="Please complete the required fields.")

        self.autosave.flush()
        payload = build_submission_payload(self.state)
        try:
            receipt = await self.submitter.submit(payload)
        except SubmissionError as exc:
            logger.error("Intake submission failed: %s", exc)
            return SubmitOutcome(ok=False, message=str(exc))

        self.start_over()
        return SubmitOutcome(ok=True, receipt=receipt, message="Assessment submitted successfully.")

    async def close(self) -> None:
        self.autosave.stop()
        await self.streamer.cancel_and_wait()
        self._drop_summary_task()
        if self._owns_client:
            await self.client.aclose()

    def _on_enter_step(self, step: int, previous: int | None) -> None:
        if step != self.navigator.total_steps:
            return
        self.review = build_review(self.state)
        if self.restorer.rehydrating:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; AI summary not started automatically.")
            return
        self.summary_task = loop.create_task(self.streamer.generate(auto=True))

    def _on_leave_step(self, step: int, next_step: int) -> None:
        if step == self.navigator.total_steps:
            self.streamer.cancel()

    def _drop_summary_task(self) -> None:
        if self.summary_task is not None and not self.summary_task.done():
            self.summary_task.cancel()
        self.summary_task = None
