from __future__ import annotations

import os
from dataclasses import dataclass

from .autosave import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_INTERVAL_SECONDS


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class WizardConfig:
    api_base_url: str = "http://localhost:3000"
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    use_streaming: bool = True
    http_timeout_seconds: float = 60.0
    draft_db_path: str | None = None

    @classmethod
    def from_env(cls) -> "WizardConfig":
        return cls(
            api_base_url=(os.getenv("PEXP_API_BASE_URL") or cls.api_base_url).rstrip("/"),
            debounce_seconds=_env_float("PEXP_AUTOSAVE_DEBOUNCE_MS", DEFAULT_DEBOUNCE_SECONDS * 1000) / 1000,
            interval_seconds=_env_float("PEXP_AUTOSAVE_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS),
            use_streaming=_env_bool("PEXP_SUMMARY_STREAMING", True),
            http_timeout_seconds=_env_float("PEXP_HTTP_TIMEOUT_SECONDS", 60.0),
            draft_db_path=(os.getenv("PEXP_DRAFT_DB_PATH") or "").strip() or None,
        )
