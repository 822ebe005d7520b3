from __future__ import annotations

import json
import logging
import os
import re
import sqlite3
from pathlib import Path
from typing import Any

import httpx
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from pexp_tools import (
    AnthropicSummaryProvider,
    MailgunConfig,
    MailgunNotifier,
    SummaryProviderConfig,
    SummaryProviderError,
    build_summary_prompt,
)
from pexp_wizard.forms import IntakeSummaryPayload
from submissions import SQLiteSubmissionDB, SubmissionStore

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

logger = logging.getLogger("pexp.backend")

SUMMARY_NOT_CONFIGURED = "AI summary service is not configured. Please contact support."
EMPTY_SUMMARY = "AI summary was empty."


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()
logging.basicConfig(
    level=os.getenv("PEXP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def _admin_api_enabled() -> bool:
    return os.getenv("PEXP_ENABLE_ADMIN_API", "false").lower() in {"1", "true", "yes"}


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value if item]
    return [str(value)] if value else []


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class IntakeSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: str = Field(min_length=3)
    full_name: str | None = Field(default=None, alias="fullName")
    phone: str | None = None
    date_of_birth: str | None = Field(default=None, alias="dob")
    pain_duration: str | None = Field(default=None, alias="painDuration")
    pain_intensity: Any = Field(default=None, alias="painIntensity")
    pain_start: str | None = Field(default=None, alias="painStart")
    timeline: str | None = None
    consent: bool = False
    ai_summary: str | None = Field(default=None, alias="aiSummary")
    selected_areas: list[str] = Field(default_factory=list, alias="selectedAreas")
    red_flags: Any = Field(default=None, alias="redFlags")
    goals: Any = None
    pain_points: list[dict[str, Any]] = Field(default_factory=list, alias="painPoints")
    raw_form_data: dict[str, Any] = Field(default_factory=dict, alias="rawFormData")

    def as_record(self) -> dict[str, Any]:
        return {
            "email": self.email.strip(),
            "full_name": (self.full_name or "").strip() or None,
            "phone": self.phone,
            "date_of_birth": self.date_of_birth,
            "pain_duration": self.pain_duration,
            "pain_intensity": _as_int(self.pain_intensity),
            "pain_start": self.pain_start,
            "timeline": self.timeline,
            "consent": self.consent,
            "ai_summary": self.ai_summary,
            "selected_areas": self.selected_areas,
            "red_flags": _as_list(self.red_flags),
            "goals": _as_list(self.goals),
            "pain_points": self.pain_points,
            "raw_form_data": self.raw_form_data,
        }


class PexpBackend:
    def __init__(self) -> None:
        db_path = os.getenv(
            "PEXP_DB_PATH",
            str((Path(__file__).resolve().parent / "pexp.sqlite")),
        )
        self.db = SQLiteSubmissionDB(db_path)
        self.store = SubmissionStore(self.db)

        provider_config = SummaryProviderConfig.from_env()
        self.summary_provider: AnthropicSummaryProvider | None = (
            AnthropicSummaryProvider(provider_config) if provider_config else None
        )
        if self.summary_provider is None:
            logger.warning("CLAUDE_API_KEY is not set. AI summary endpoints will be disabled.")

        mail_config = MailgunConfig.from_env()
        self.notifier: MailgunNotifier | None = MailgunNotifier(mail_config) if mail_config else None

    def notify(self, record: dict[str, Any]) -> None:
        if self.notifier is None:
            logger.info("Mailgun is not configured; skipping submission emails.")
            return
        self.notifier.send_submission_emails(record)


container = PexpBackend()
app = FastAPI(title="PEXP Intake Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _ensure_admin_enabled() -> None:
    if not _admin_api_enabled():
        raise HTTPException(status_code=404, detail="Not Found")


def _emit_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps({'event': event, **data})}\n\n"


def _summary_prompt(payload: IntakeSummaryPayload) -> tuple[AnthropicSummaryProvider, str]:
    prompt = build_summary_prompt(payload)
    if not prompt.strip():
        raise HTTPException(status_code=400, detail="Unable to build AI prompt from the provided data.")
    provider = container.summary_provider
    if provider is None:
        raise HTTPException(status_code=503, detail=SUMMARY_NOT_CONFIGURED)
    return provider, prompt


@app.get("/health")
def health():
    return {
        "status": "ok",
        "summary_configured": container.summary_provider is not None,
        "email_configured": container.notifier is not None,
    }


@app.post("/api/submit-intake")
def submit_intake(payload: IntakeSubmission, background_tasks: BackgroundTasks):
    if not payload.consent:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Consent is required to submit the assessment."},
        )
    record = payload.as_record()
    try:
        submission_id = container.store.save(record)
    except sqlite3.Error as exc:
        logger.error("Failed to save submission: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to submit assessment"},
        )
    logger.info(
        "Form submission received: id=%s areas=%s intensity=%s",
        submission_id,
        record["selected_areas"],
        record["pain_intensity"],
    )
    background_tasks.add_task(container.notify, record)
    return {"success": True, "message": "Assessment submitted successfully", "id": submission_id}


@app.post("/api/generate-summary/stream")
def generate_summary_stream(payload: IntakeSummaryPayload):
    provider, prompt = _summary_prompt(payload)

    def event_stream():
        yield _emit_sse("status", {"message": "Connecting to AI..."})
        parts: list[str] = []
        try:
            for chunk in provider.stream_summary(prompt):
                parts.append(chunk)
                yield _emit_sse("delta", {"html": chunk})
        except (SummaryProviderError, httpx.HTTPError) as exc:
            logger.warning("AI streaming error: %s", exc)
            message = str(exc) or "An unexpected error occurred while streaming the AI summary."
            yield _emit_sse("error", {"message": message})
            return

        summary = "".join(parts)
        if not summary.strip():
            yield _emit_sse("error", {"message": EMPTY_SUMMARY})
            return
        yield _emit_sse("complete", {"html": summary})

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.post("/api/generate-summary")
def generate_summary(payload: IntakeSummaryPayload):
    provider, prompt = _summary_prompt(payload)
    try:
        summary = provider.complete_summary(prompt).strip()
    except (SummaryProviderError, httpx.HTTPError) as exc:
        logger.warning("Failed to generate AI summary: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc) or "AI summary generation failed.") from exc
    if not summary:
        raise HTTPException(status_code=502, detail=EMPTY_SUMMARY)
    return {"summary": summary}


@app.get("/api/submissions")
def list_submissions(limit: int = 100, offset: int = 0, email: str | None = None):
    _ensure_admin_enabled()
    if email:
        return {"submissions": container.store.list_by_email(email)}
    return {"submissions": container.store.list_recent(limit=min(limit, 500), offset=offset)}


@app.get("/api/submissions/stats")
def submission_stats():
    _ensure_admin_enabled()
    return container.store.stats()


@app.get("/api/submissions/{submission_id}")
def get_submission(submission_id: str):
    _ensure_admin_enabled()
    record = container.store.get(submission_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return record
