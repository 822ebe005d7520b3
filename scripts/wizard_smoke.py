#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import importlib
import json
import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

BASE_URL = "http://pexp.smoke"


class ScriptedSummaryProvider:
  """Stands in for Anthropic so the smoke run never leaves the process."""

  def stream_summary(self, prompt: str):
    region_line = next((line for line in prompt.splitlines() if line.startswith("- Region:")), "")
    yield "<h3>Clinical Overview</h3>"
    yield f"<p>{region_line[2:] or 'No regions'}</p>"

  def complete_summary(self, prompt: str) -> str:
    return "".join(self.stream_summary(prompt))


def _center(hotspots, view: str, box) -> tuple[float, float]:
  cx, cy = hotspots[view][0].center
  return box.left + cx * box.width, box.top + cy * box.height


def _fill_steps(wizard, hotspots, box) -> None:
  wizard.set_field("fullName", "Jane Doe")
  wizard.set_field("email", "jane@example.com")
  wizard.next_step()
  wizard.click_body_map("front", *_center(hotspots, "front", box), box)
  wizard.confirm_pain_point(6)
  wizard.set_field("painDuration", "1-3-months")
  wizard.set_field("painIntensity", "6")
  wizard.next_step()
  wizard.toggle_choice("currentTreatments", "physiotherapy", True)
  wizard.next_step()
  wizard.toggle_choice("goals", "return-to-sport", True)
  wizard.next_step()


async def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Isolated database and admin routes so the run can read back what it stored.
  workdir = tempfile.mkdtemp(prefix="pexp-smoke-")
  os.environ["PEXP_DB_PATH"] = str(Path(workdir) / "smoke.sqlite")
  os.environ["PEXP_ENABLE_ADMIN_API"] = "true"

  backend_module = importlib.reload(importlib.import_module("main"))
  if backend_module.container.summary_provider is None:
    backend_module.container.summary_provider = ScriptedSummaryProvider()
  backend_module.container.notifier = None

  from pexp_wizard import InMemoryKeyValueStore, IntakeWizard, WizardConfig
  from pexp_wizard.hotspots import DEFAULT_HOTSPOTS
  from pexp_wizard.pain_points import DiagramBox

  box = DiagramBox(left=0, top=0, width=400, height=800)
  config = WizardConfig(api_base_url=BASE_URL, debounce_seconds=0.05)

  def make_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=backend_module.app), base_url=BASE_URL)

  async def full_intake() -> dict[str, Any]:
    async with make_client() as client:
      wizard = IntakeWizard(config=config, store=InMemoryKeyValueStore(), client=client)
      wizard.start()
      wizard.set_consent(True)
      _fill_steps(wizard, DEFAULT_HOTSPOTS, box)
      summary = await wizard.summary_task if wizard.summary_task is not None else None
      outcome = await wizard.submit()
      await wizard.close()
      stored = None
      if outcome.receipt is not None:
        stored = (await client.get(f"/api/submissions/{outcome.receipt.submission_id}")).json()
    return {
      "pass": bool(summary and summary.ok and outcome.ok and stored and stored.get("ai_summary")),
      "summary_status": summary.status if summary else None,
      "submission_message": outcome.message,
      "stored_areas": (stored or {}).get("selected_areas"),
    }

  async def draft_resume() -> dict[str, Any]:
    store = InMemoryKeyValueStore()
    async with make_client() as client:
      first = IntakeWizard(config=config, store=store, client=client)
      first.start()
      first.set_field("fullName", "Jane Doe")
      first.set_field("email", "jane@example.com")
      first.next_step()
      first.autosave.flush()
      await first.close()

      second = IntakeWizard(config=config, store=store, client=client)
      offer = second.start()
      resumed = second.continue_draft()
      step = second.current_step
      name = second.state.fields.get("fullName")
      await second.close()
    return {
      "pass": offer is not None and resumed and step == 2 and name == "Jane Doe",
      "offered_step": offer.current_step if offer else None,
      "restored_step": step,
    }

  async def consent_gate() -> dict[str, Any]:
    async with make_client() as client:
      wizard = IntakeWizard(config=config, store=InMemoryKeyValueStore(), client=client)
      _fill_steps(wizard, DEFAULT_HOTSPOTS, box)
      automatic = await wizard.summary_task if wizard.summary_task is not None else None
      explicit = await wizard.generate_summary()
      outcome = await wizard.submit()
      await wizard.close()
    return {
      "pass": (
        automatic is not None
        and automatic.status == "skipped"
        and explicit.status == "error"
        and not outcome.ok
        and 5 in outcome.errors
      ),
      "automatic_status": automatic.status if automatic else None,
      "explicit_error": explicit.error,
    }

  scenarios: list[tuple[str, Callable[[], Awaitable[dict[str, Any]]]]] = [
    ("Complete Intake With AI Summary", full_intake),
    ("Draft Resume After Reload", draft_resume),
    ("Consent Gate On Review Step", consent_gate),
  ]

  results: list[dict[str, Any]] = []
  for name, scenario in scenarios:
    try:
      result = await scenario()
    except (httpx.HTTPError, AssertionError, RuntimeError) as exc:
      result = {"pass": False, "error": f"{type(exc).__name__}: {exc}"}
    result["name"] = name
    results.append(result)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Intake Wizard Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- Database: `{os.environ['PEXP_DB_PATH']}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]
  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    details = {key: value for key, value in item.items() if key not in {"name", "pass"}}
    report_lines.append("```json")
    report_lines.append(json.dumps(details, indent=2, ensure_ascii=True, default=str))
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "WIZARD_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(asyncio.run(run()))
