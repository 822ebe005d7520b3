from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class SQLiteSubmissionDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS patient_submissions (
                  id TEXT PRIMARY KEY,
                  full_name TEXT,
                  email TEXT NOT NULL,
                  phone TEXT,
                  date_of_birth TEXT,
                  pain_duration TEXT,
                  pain_intensity INTEGER,
                  pain_start TEXT,
                  timeline TEXT,
                  consent INTEGER NOT NULL DEFAULT 0,
                  ai_summary TEXT,
                  selected_areas_json TEXT NOT NULL DEFAULT '[]',
                  red_flags_json TEXT NOT NULL DEFAULT '[]',
                  goals_json TEXT NOT NULL DEFAULT '[]',
                  pain_points_json TEXT NOT NULL DEFAULT '[]',
                  raw_form_data_json TEXT NOT NULL DEFAULT '{}',
                  submitted_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_submissions_email
                  ON patient_submissions(email);
                CREATE INDEX IF NOT EXISTS idx_submissions_submitted
                  ON patient_submissions(submitted_at);
                """
            )
