from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from .database import SQLiteSubmissionDB

_JSON_COLUMNS = {
    "selected_areas_json": "selected_areas",
    "red_flags_json": "red_flags",
    "goals_json": "goals",
    "pain_points_json": "pain_points",
    "raw_form_data_json": "raw_form_data",
}

_LIST_COLUMNS = (
    "id, full_name, email, phone, pain_duration, pain_intensity, "
    "selected_areas_json, submitted_at, ai_summary"
)


def _json_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _row_to_dict(row: Any) -> dict[str, Any]:
    record = dict(row)
    for column, key in _JSON_COLUMNS.items():
        if column in record:
            raw = record.pop(column)
            record[key] = json.loads(raw) if raw else None
    if "consent" in record:
        record["consent"] = bool(record["consent"])
    return record


class SubmissionStore:
    def __init__(self, db: SQLiteSubmissionDB) -> None:
        self._db = db

    def save(self, submission: dict[str, Any]) -> str:
        submission_id = str(uuid.uuid4())
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO patient_submissions (
                  id, full_name, email, phone, date_of_birth,
                  pain_duration, pain_intensity, pain_start, timeline,
                  consent, ai_summary,
                  selected_areas_json, red_flags_json, goals_json, pain_points_json, raw_form_data_json,
                  submitted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    submission_id,
                    submission.get("full_name") or None,
                    submission["email"],
                    submission.get("phone") or None,
                    submission.get("date_of_birth") or None,
                    submission.get("pain_duration") or None,
                    submission.get("pain_intensity"),
                    submission.get("pain_start") or None,
                    submission.get("timeline") or None,
                    1 if submission.get("consent") else 0,
                    submission.get("ai_summary") or None,
                    _json_dumps(submission.get("selected_areas") or []),
                    _json_dumps(submission.get("red_flags") or []),
                    _json_dumps(submission.get("goals") or []),
                    _json_dumps(submission.get("pain_points") or []),
                    _json_dumps(submission.get("raw_form_data") or {}),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
        return submission_id

    def get(self, submission_id: str) -> dict[str, Any] | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM patient_submissions WHERE id = ?",
                (submission_id,),
            ).fetchone()
        return _row_to_dict(row) if row else None

    def list_recent(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_LIST_COLUMNS}
                FROM patient_submissions
                ORDER BY submitted_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (max(1, limit), max(0, offset)),
            ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def list_by_email(self, email: str) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM patient_submissions
                WHERE lower(email) = lower(?)
                ORDER BY submitted_at DESC, rowid DESC
                """,
                (email.strip(),),
            ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def stats(self) -> dict[str, Any]:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT
                  COUNT(*) AS total_submissions,
                  AVG(pain_intensity) AS avg_pain_intensity,
                  COUNT(DISTINCT lower(email)) AS unique_patients,
                  MIN(submitted_at) AS first_submission,
                  MAX(submitted_at) AS latest_submission
                FROM patient_submissions
                """
            ).fetchone()
        stats = dict(row)
        if stats["avg_pain_intensity"] is not None:
            stats["avg_pain_intensity"] = round(float(stats["avg_pain_intensity"]), 2)
        return stats
