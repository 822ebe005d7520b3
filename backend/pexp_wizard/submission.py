from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import SubmissionError
from .models import WizardState
from .persistence import to_snapshot

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/submit-intake"


@dataclass(frozen=True)
class SubmissionReceipt:
    submission_id: str
    message: str = ""


def build_submission_payload(state: WizardState) -> dict[str, Any]:
    payload = to_snapshot(state)
    payload["consent"] = state.consent_given
    payload["rawFormData"] = {
        name: list(value) if isinstance(value, list) else value for name, value in state.fields.items()
    }
    return payload


class IntakeSubmitter:
    def __init__(self, client: httpx.AsyncClient, *, base_url: str = "") -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def submit(self, payload: dict[str, Any]) -> SubmissionReceipt:
        try:
            response = await self.client.post(f"{self.base_url}{SUBMIT_PATH}", json=payload)
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Could not reach the intake service: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or body.get("success") is False:
            message = body.get("message") or body.get("detail") or f"Submission failed with status {response.status_code}."
            raise SubmissionError(str(message), status_code=response.status_code)

        submission_id = body.get("id")
        if not submission_id:
            raise SubmissionError("Submission response did not include an id.", status_code=response.status_code)
        logger.info("Intake submitted: %s", submission_id)
        return SubmissionReceipt(submission_id=str(submission_id), message=str(body.get("message") or ""))
