from __future__ import annotations

import html
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)

MAILGUN_API_BASE = "https://api.mailgun.net/v3"
SUMMARY_UNAVAILABLE_HTML = "<p>AI summary not available</p>"


@dataclass(frozen=True)
class MailgunConfig:
    api_key: str
    domain: str
    sender_address: str
    recipient_address: str
    bcc_address: str | None = None
    base_url: str = MAILGUN_API_BASE

    @classmethod
    def from_env(cls) -> "MailgunConfig | None":
        api_key = (os.getenv("MAILGUN_API_KEY") or "").strip()
        sender = (os.getenv("EMAIL_SENDER_ADDRESS") or "").strip()
        recipient = (os.getenv("EMAIL_RECIPIENT_ADDRESS") or "").strip()
        if not api_key or not sender or not recipient:
            return None
        domain = (os.getenv("MAILGUN_DOMAIN") or "").strip() or sender.split("@")[-1]
        return cls(
            api_key=api_key,
            domain=domain,
            sender_address=sender,
            recipient_address=recipient,
            bcc_address=(os.getenv("EMAIL_BCC_ADDRESS") or "").strip() or None,
        )


@dataclass
class NotificationReport:
    sent: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def _text(value: Any, fallback: str) -> str:
    if value is None or value == "" or value == []:
        return fallback
    if isinstance(value, list):
        return html.escape(", ".join(str(item) for item in value))
    return html.escape(str(value))


def render_patient_confirmation(submission: dict[str, Any]) -> str:
    name = _text(submission.get("full_name"), "Patient")
    areas = _text(submission.get("selected_areas"), "Not specified")
    intensity = _text(submission.get("pain_intensity"), "Not specified")
    summary = submission.get("ai_summary") or SUMMARY_UNAVAILABLE_HTML
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
  <h1>Thank You for Your Submission</h1>
  <p>Dear {name},</p>
  <p>Thank you for completing your pain assessment. We have received your submission and our team will review it shortly.</p>
  <h2>Submission Summary</h2>
  <p><strong>Pain Areas:</strong> {areas}</p>
  <p><strong>Pain Intensity:</strong> {intensity}/10</p>
  <h2>Your Clinical Summary</h2>
  {summary}
  <p><strong>Next Steps:</strong></p>
  <ul>
    <li>Our clinical team will review your assessment</li>
    <li>We will contact you within 1-2 business days</li>
    <li>If you have urgent concerns, please call us directly</li>
  </ul>
  <p>This is an automated confirmation email. Please do not reply to this message.</p>
</body>
</html>"""


def render_clinic_notification(submission: dict[str, Any], submitted_at: datetime | None = None) -> str:
    stamp = (submitted_at or datetime.now(timezone.utc)).strftime("%A, %B %d, %Y %H:%M %Z")
    red_flags = submission.get("red_flags") or []
    red_flag_block = ""
    if red_flags:
        red_flag_block = f"<p><strong>RED FLAGS:</strong> {_text(red_flags, '')}</p>"
    summary = submission.get("ai_summary") or SUMMARY_UNAVAILABLE_HTML
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
  <h1>New Pain Assessment Submission</h1>
  <p><em>{stamp}</em></p>
  <h2>Patient Information</h2>
  <p><strong>Name:</strong> {_text(submission.get("full_name"), "Not provided")}</p>
  <p><strong>Email:</strong> {_text(submission.get("email"), "Not provided")}</p>
  <p><strong>Phone:</strong> {_text(submission.get("phone"), "Not provided")}</p>
  <h2>Pain Overview</h2>
  <p><strong>Affected Areas:</strong> {_text(submission.get("selected_areas"), "Not specified")}</p>
  <p><strong>Pain Intensity:</strong> {_text(submission.get("pain_intensity"), "Not specified")}/10</p>
  {red_flag_block}
  <h2>AI Clinical Summary</h2>
  {summary}
  <p><strong>Action Required:</strong> Please review this submission and contact the patient within 1-2 business days.</p>
</body>
</html>"""


class MailgunNotifier:
    def __init__(self, config: MailgunConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    def _send(self, *, sender: str, to: str, subject: str, body: str, bcc: str | None = None) -> str:
        data = {"from": sender, "to": to, "subject": subject, "html": body}
        if bcc:
            data["bcc"] = bcc
        with httpx.Client(timeout=httpx.Timeout(20.0, connect=8.0), transport=self._transport) as client:
            response = client.post(
                f"{self.config.base_url}/{self.config.domain}/messages",
                auth=("api", self.config.api_key),
                data=data,
            )
        if response.status_code >= 400:
            raise RuntimeError(f"Mailgun API error ({response.status_code}): {response.text.strip()}")
        try:
            return str(response.json().get("id") or "")
        except ValueError:
            return ""

    def send_submission_emails(self, submission: dict[str, Any]) -> NotificationReport:
        """Send the patient confirmation and clinic notification; failures are collected, never raised."""
        report = NotificationReport()
        name = submission.get("full_name") or ""
        patient_email = submission.get("email")

        if patient_email:
            try:
                message_id = self._send(
                    sender=f'"Pain Assessment" <{self.config.sender_address}>',
                    to=patient_email,
                    subject=f"Your Pain Assessment Submission - {name or 'Confirmation'}",
                    body=render_patient_confirmation(submission),
                )
                report.sent.append(patient_email)
                logger.info("Confirmation email sent to patient (message id %s).", message_id)
            except (httpx.HTTPError, RuntimeError) as exc:
                report.errors.append(f"Failed to send confirmation email to patient: {exc}")
        else:
            report.errors.append("Patient email not provided, skipping confirmation email")

        try:
            message_id = self._send(
                sender=f'"Pain Assessment System" <{self.config.sender_address}>',
                to=self.config.recipient_address,
                subject=f"New Pain Assessment - {name or 'New Patient'}",
                body=render_clinic_notification(submission),
                bcc=self.config.bcc_address,
            )
            report.sent.append(self.config.recipient_address)
            logger.info("Notification email sent to clinic (message id %s).", message_id)
        except (httpx.HTTPError, RuntimeError) as exc:
            report.errors.append(f"Failed to send notification email to clinic: {exc}")

        for error in report.errors:
            logger.warning(error)
        return report
