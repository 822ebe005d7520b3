from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from pexp_wizard.models import WizardState  # noqa: E402
from pexp_wizard.persistence import InMemoryKeyValueStore, SnapshotAdapter  # noqa: E402
from scheduler_utils import ManualScheduler  # noqa: E402


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "pexp-test.sqlite"
    monkeypatch.setenv("PEXP_DB_PATH", str(db_path))
    monkeypatch.setenv("PEXP_ENABLE_ADMIN_API", "true")
    # Provider and mail tests inject fakes; never reach the real services.
    for name in ("CLAUDE_API_KEY", "MAILGUN_API_KEY", "EMAIL_SENDER_ADDRESS", "EMAIL_RECIPIENT_ADDRESS"):
        monkeypatch.delenv(name, raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def adapter(memory_store) -> SnapshotAdapter:
    return SnapshotAdapter(memory_store)


@pytest.fixture
def state() -> WizardState:
    return WizardState()
