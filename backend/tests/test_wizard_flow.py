from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pexp_wizard.config import WizardConfig
from pexp_wizard.hotspots import DEFAULT_HOTSPOTS
from pexp_wizard.pain_points import DiagramBox
from pexp_wizard.persistence import SnapshotAdapter
from pexp_wizard.submission import SUBMIT_PATH
from pexp_wizard.summary_stream import STREAM_PATH
from pexp_wizard.wizard import IntakeWizard

BASE_URL = "http://intake.test"
BOX = DiagramBox(left=0, top=0, width=400, height=800)


def _sse(*frames: dict) -> str:
    return "".join(f"event: {frame['event']}\ndata: {json.dumps(frame)}\n\n" for frame in frames)


class FakeIntakeService:
    def __init__(self, submit_status: int = 200) -> None:
        self.submit_status = submit_status
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request.url.path, body))
        if request.url.path == STREAM_PATH:
            return httpx.Response(200, text=_sse({"event": "complete", "html": "<p>Summary</p>"}))
        if request.url.path == SUBMIT_PATH:
            if self.submit_status >= 400:
                return httpx.Response(
                    self.submit_status,
                    json={"success": False, "message": "Failed to submit assessment"},
                )
            return httpx.Response(200, json={"success": True, "message": "Assessment submitted successfully", "id": "sub-1"})
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]


def _wizard(service, memory_store, scheduler) -> IntakeWizard:
    return IntakeWizard(
        config=WizardConfig(api_base_url=BASE_URL),
        store=memory_store,
        client=httpx.AsyncClient(transport=httpx.MockTransport(service)),
        scheduler=scheduler,
    )


def _center(view: str, hotspot_id: str) -> tuple[float, float]:
    hotspot = next(spot for spot in DEFAULT_HOTSPOTS[view] if spot.id == hotspot_id)
    cx, cy = hotspot.center
    return cx * BOX.width, cy * BOX.height


def _complete_steps_one_to_four(wizard: IntakeWizard) -> None:
    wizard.set_field("fullName", "Ada Patient")
    wizard.set_field("email", "ada@example.com")
    assert wizard.next_step().moved

    wizard.click_body_map("front", *_center("front", "shoulder-l"), BOX)
    wizard.confirm_pain_point(7)
    wizard.set_field("painDuration", "1-3-months")
    wizard.set_field("painIntensity", "7")
    assert wizard.next_step().moved

    wizard.toggle_choice("currentTreatments", "physiotherapy", True)
    assert wizard.next_step().moved

    wizard.toggle_choice("goals", "return-to-sport", True)
    assert wizard.next_step().moved


async def _settle(wizard: IntakeWizard) -> None:
    if wizard.summary_task is not None:
        await wizard.summary_task


@pytest.mark.asyncio
async def test_full_intake_submits_and_clears_draft(memory_store, scheduler):
    service = FakeIntakeService()
    wizard = _wizard(service, memory_store, scheduler)
    assert wizard.start() is None

    _complete_steps_one_to_four(wizard)
    assert wizard.current_step == 5
    assert wizard.progress_percent == 100
    assert wizard.step_title == "Review"
    assert "Right Shoulder (Front) (7/10)" in wizard.review_text

    # Without consent the automatic summary stays silent.
    await _settle(wizard)
    assert service.paths() == []

    wizard.set_consent(True)
    summary = await wizard.generate_summary()
    assert summary.ok
    assert wizard.state.ai_summary.content == "<p>Summary</p>"

    outcome = await wizard.submit()
    await wizard.close()

    assert outcome.ok
    assert outcome.receipt is not None and outcome.receipt.submission_id == "sub-1"
    assert service.paths() == [STREAM_PATH, SUBMIT_PATH]
    submitted = service.requests[-1][1]
    assert submitted["consent"] is True
    assert submitted["selectedAreas"] == ["Right Shoulder (Front)"]
    assert submitted["painPoints"][0]["intensityLevel"] == "medium"
    assert submitted["aiSummary"] == "<p>Summary</p>"
    assert submitted["rawFormData"]["currentTreatments"] == ["physiotherapy"]
    assert SnapshotAdapter(memory_store).read() is None
    assert wizard.current_step == 1
    assert wizard.state.fields == {}


@pytest.mark.asyncio
async def test_entering_review_with_consent_starts_summary_automatically(memory_store, scheduler):
    service = FakeIntakeService()
    wizard = _wizard(service, memory_store, scheduler)
    wizard.set_consent(True)

    _complete_steps_one_to_four(wizard)
    await _settle(wizard)
    await wizard.close()

    assert service.paths() == [STREAM_PATH]
    assert wizard.state.ai_summary.content == "<p>Summary</p>"


@pytest.mark.asyncio
async def test_submit_with_missing_answers_reports_errors_without_posting(memory_store, scheduler):
    service = FakeIntakeService()
    wizard = _wizard(service, memory_store, scheduler)
    wizard.set_field("fullName", "Ada Patient")

    outcome = await wizard.submit()
    await wizard.close()

    assert not outcome.ok
    assert set(outcome.errors) == {1, 2, 5}
    assert service.paths() == []


@pytest.mark.asyncio
async def test_failed_submission_keeps_local_draft(memory_store, scheduler):
    service = FakeIntakeService(submit_status=500)
    wizard = _wizard(service, memory_store, scheduler)
    wizard.set_consent(True)
    _complete_steps_one_to_four(wizard)
    await _settle(wizard)

    outcome = await wizard.submit()
    await wizard.close()

    assert not outcome.ok
    assert outcome.message == "Failed to submit assessment"
    snapshot = SnapshotAdapter(memory_store).read()
    assert snapshot is not None
    assert snapshot["fullName"] == "Ada Patient"
    assert wizard.current_step == 5


@pytest.mark.asyncio
async def test_leaving_review_cancels_summary_in_flight(memory_store, scheduler):
    started = asyncio.Event()

    async def slow(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.Event().wait()
        return httpx.Response(500)

    wizard = IntakeWizard(
        config=WizardConfig(api_base_url=BASE_URL),
        store=memory_store,
        client=httpx.AsyncClient(transport=httpx.MockTransport(slow)),
        scheduler=scheduler,
    )
    wizard.set_consent(True)
    _complete_steps_one_to_four(wizard)
    await started.wait()
    task = wizard.summary_task
    assert wizard.streamer.in_flight

    assert wizard.previous_step().moved
    outcome = await task
    await wizard.close()

    assert outcome.status == "cancelled"
    assert not wizard.streamer.in_flight
    assert wizard.state.ai_summary.content == ""


@pytest.mark.asyncio
async def test_red_flag_listener_fires_when_flags_are_checked(memory_store, scheduler):
    wizard = _wizard(FakeIntakeService(), memory_store, scheduler)
    alerts: list[list[str]] = []
    wizard.add_red_flag_listener(alerts.append)

    wizard.toggle_choice("redFlags", "bowel-bladder", True)
    wizard.toggle_choice("redFlags", "bowel-bladder", True)
    wizard.toggle_choice("redFlags", "bowel-bladder", False)
    await wizard.close()

    assert alerts == [["bowel-bladder"]]


@pytest.mark.asyncio
async def test_mutations_are_debounced_into_a_single_save(memory_store, scheduler):
    wizard = _wizard(FakeIntakeService(), memory_store, scheduler)
    wizard.set_field("fullName", "A")
    wizard.set_field("fullName", "Ad")
    wizard.set_field("fullName", "Ada")
    scheduler.advance(1)
    await wizard.close()

    assert memory_store.write_count == 1
    assert SnapshotAdapter(memory_store).read()["fullName"] == "Ada"
