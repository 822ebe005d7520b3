from __future__ import annotations


def _submission(**overrides) -> dict:
    payload = {
        "fullName": "Ada Patient",
        "email": "ada@example.com",
        "phone": "555-0100",
        "painDuration": "1-3-months",
        "painIntensity": "7",
        "redFlags": ["night-pain"],
        "goals": ["return-to-sport"],
        "selectedAreas": ["Right Shoulder (Front)"],
        "painPoints": [
            {
                "key": "front|shoulder-l|Right Shoulder",
                "view": "front",
                "region": "Right Shoulder",
                "xPercent": 34.0,
                "yPercent": 18.0,
                "intensity": 7,
            }
        ],
        "aiSummary": "<p>Summary</p>",
        "currentStep": 5,
        "_savedAt": "2026-01-01T00:00:00Z",
        "consent": True,
        "rawFormData": {"fullName": "Ada Patient", "consent": "on"},
    }
    payload.update(overrides)
    return payload


def test_submit_intake_persists_submission(client, backend_module):
    response = client.post("/api/submit-intake", json=_submission())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Assessment submitted successfully"

    record = backend_module.container.store.get(body["id"])
    assert record is not None
    assert record["full_name"] == "Ada Patient"
    assert record["pain_intensity"] == 7
    assert record["consent"] is True
    assert record["red_flags"] == ["night-pain"]
    assert record["pain_points"][0]["region"] == "Right Shoulder"
    assert record["raw_form_data"]["consent"] == "on"


def test_submit_intake_requires_consent(client):
    response = client.post("/api/submit-intake", json=_submission(consent=False))

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_submit_intake_requires_email(client):
    payload = _submission()
    payload.pop("email")

    response = client.post("/api/submit-intake", json=payload)

    assert response.status_code == 422


def test_submission_emails_are_sent_after_saving(client, backend_module):
    sent: list[dict] = []

    class _RecordingNotifier:
        def send_submission_emails(self, record):
            sent.append(record)

    backend_module.container.notifier = _RecordingNotifier()

    response = client.post("/api/submit-intake", json=_submission())

    assert response.status_code == 200
    assert len(sent) == 1
    assert sent[0]["email"] == "ada@example.com"
    assert sent[0]["selected_areas"] == ["Right Shoulder (Front)"]


def test_admin_routes_list_lookup_and_stats(client):
    first = client.post("/api/submit-intake", json=_submission(painIntensity="4")).json()["id"]
    client.post("/api/submit-intake", json=_submission(email="ADA@example.com", painIntensity="8"))
    client.post("/api/submit-intake", json=_submission(email="bo@example.com", painIntensity=""))

    listing = client.get("/api/submissions", params={"limit": 2}).json()["submissions"]
    assert len(listing) == 2
    assert listing[0]["email"] == "bo@example.com"
    assert "raw_form_data" not in listing[0]

    by_email = client.get("/api/submissions", params={"email": "ada@example.com"}).json()["submissions"]
    assert len(by_email) == 2

    detail = client.get(f"/api/submissions/{first}")
    assert detail.status_code == 200
    assert detail.json()["pain_intensity"] == 4
    assert client.get("/api/submissions/missing").status_code == 404

    stats = client.get("/api/submissions/stats").json()
    assert stats["total_submissions"] == 3
    assert stats["unique_patients"] == 2
    assert stats["avg_pain_intensity"] == 6.0


def test_admin_routes_are_hidden_unless_enabled(client, monkeypatch):
    monkeypatch.setenv("PEXP_ENABLE_ADMIN_API", "false")

    assert client.get("/api/submissions").status_code == 404
    assert client.get("/api/submissions/stats").status_code == 404


def test_health_reports_collaborator_configuration(client):
    body = client.get("/health").json()

    assert body == {"status": "ok", "summary_configured": False, "email_configured": False}
