from __future__ import annotations

import httpx

from pexp_tools.notifications import MailgunConfig, MailgunNotifier, render_clinic_notification

CONFIG = MailgunConfig(
    api_key="key-test",
    domain="mg.example.com",
    sender_address="intake@example.com",
    recipient_address="clinic@example.com",
    bcc_address="audit@example.com",
)

RECORD = {
    "full_name": "Ada <script>",
    "email": "ada@example.com",
    "phone": None,
    "selected_areas": ["Right Shoulder (Front)"],
    "pain_intensity": 7,
    "red_flags": ["night-pain"],
    "ai_summary": "<p>Summary</p>",
}


def test_sends_patient_confirmation_and_clinic_notification():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": f"<msg-{len(requests)}>", "message": "Queued"})

    report = MailgunNotifier(CONFIG, transport=httpx.MockTransport(handler)).send_submission_emails(RECORD)

    assert report.success
    assert report.sent == ["ada@example.com", "clinic@example.com"]
    assert all(str(request.url) == "https://api.mailgun.net/v3/mg.example.com/messages" for request in requests)
    clinic_form = requests[1].content.decode()
    assert "bcc=audit%40example.com" in clinic_form
    assert "bcc=" not in requests[0].content.decode()
    assert requests[0].headers["authorization"].startswith("Basic ")


def test_failures_are_collected_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Forbidden")

    report = MailgunNotifier(CONFIG, transport=httpx.MockTransport(handler)).send_submission_emails(
        {**RECORD, "email": None}
    )

    assert not report.success
    assert report.sent == []
    assert report.errors[0] == "Patient email not provided, skipping confirmation email"
    assert "Mailgun API error (401)" in report.errors[1]


def test_clinic_email_escapes_patient_text():
    body = render_clinic_notification(RECORD)

    assert "Ada &lt;script&gt;" in body
    assert "<p>Summary</p>" in body
    assert "RED FLAGS:</strong> night-pain" in body
