from __future__ import annotations

import json

import pytest

from pexp_wizard.errors import QuotaExceededError, StorageError
from pexp_wizard.models import AiSummaryState, PainPoint, WizardState
from pexp_wizard.persistence import (
    STORAGE_KEY,
    InMemoryKeyValueStore,
    SnapshotAdapter,
    SQLiteKeyValueStore,
    from_snapshot,
    to_snapshot,
)


def _point(key: str, view: str, region: str, intensity: int) -> PainPoint:
    return PainPoint(
        key=key,
        view=view,
        region=region,
        original_name=region,
        display_name=f"{region} ({view.capitalize()})",
        x_percent=33.5,
        y_percent=61.25,
        intensity=intensity,
    )


def _sample_state() -> WizardState:
    state = WizardState(current_step=3)
    state.fields.update(
        {
            "fullName": "Ada Patient",
            "email": "ada@example.com",
            "painDuration": "6-12-months",
            "painIntensity": "6",
            "redFlags": ["night-pain", "fever"],
            "consent": "on",
        }
    )
    for point in (
        _point("front|knee-r|Left Knee", "front", "Left Knee", 8),
        _point("back|lower-back|Lower Back", "back", "Lower Back", 2),
    ):
        state.pain_points[point.key] = point
    state.ai_summary = AiSummaryState(content="<p>ok</p>", payload_fingerprint="abc")
    return state


def test_snapshot_round_trip_preserves_state():
    state = _sample_state()

    restored = from_snapshot(json.loads(json.dumps(to_snapshot(state))))

    assert restored.fields == state.fields
    assert restored.pain_points == state.pain_points
    assert restored.current_step == 3
    assert restored.ai_summary.content == "<p>ok</p>"
    assert restored.ai_summary.payload_fingerprint == "abc"
    assert to_snapshot(restored)["painPoints"] == to_snapshot(state)["painPoints"]


def test_snapshot_carries_derived_keys():
    snapshot = to_snapshot(_sample_state())

    assert snapshot["selectedAreas"] == ["Left Knee (Front)", "Lower Back (Back)"]
    assert snapshot["painPoints"][0]["intensityLevel"] == "high"
    assert snapshot["currentStep"] == 3
    assert snapshot["_savedAt"] is None


def test_from_snapshot_skips_malformed_points_and_clamps_step():
    snapshot = {
        "fullName": "Ada",
        "currentStep": 99,
        "painPoints": [
            {"view": "front", "region": "Chest", "xPercent": 10, "yPercent": 20, "intensity": 3},
            {"view": "sideways", "region": "Chest", "xPercent": 10, "yPercent": 20},
            {"view": "front", "region": "Chest", "xPercent": "nope", "yPercent": 20},
            "garbage",
        ],
    }

    state = from_snapshot(snapshot)

    assert state.current_step == 5
    assert len(state.pain_points) == 1
    assert state.fields == {"fullName": "Ada"}


def test_adapter_write_read_clear(adapter, memory_store):
    saved_at = adapter.write(_sample_state())

    snapshot = adapter.read()
    assert snapshot is not None
    assert snapshot["_savedAt"].endswith("Z")
    assert from_snapshot(snapshot).saved_at == saved_at
    assert memory_store.get_item(STORAGE_KEY) is not None

    adapter.clear()
    assert adapter.read() is None
    assert not adapter.exists()


def test_corrupt_snapshot_is_treated_as_missing(memory_store, adapter):
    memory_store.set_item(STORAGE_KEY, "{not json")
    assert adapter.read() is None

    memory_store.set_item(STORAGE_KEY, "[1, 2]")
    assert adapter.read() is None


def test_quota_error_propagates_unwrapped():
    adapter = SnapshotAdapter(InMemoryKeyValueStore(quota_bytes=10))
    with pytest.raises(QuotaExceededError):
        adapter.write(_sample_state())


class _BrokenStore:
    def get_item(self, key):
        raise OSError("disk gone")

    def set_item(self, key, value):
        raise OSError("disk gone")

    def remove_item(self, key):
        raise OSError("disk gone")


def test_backend_failures_surface_as_storage_errors():
    adapter = SnapshotAdapter(_BrokenStore())
    with pytest.raises(StorageError):
        adapter.read()
    with pytest.raises(StorageError):
        adapter.write(WizardState())
    with pytest.raises(StorageError):
        adapter.clear()


def test_sqlite_store_persists_drafts(tmp_path):
    path = str(tmp_path / "drafts.sqlite")
    SnapshotAdapter(SQLiteKeyValueStore(path)).write(_sample_state())

    snapshot = SnapshotAdapter(SQLiteKeyValueStore(path)).read()

    assert snapshot is not None
    assert from_snapshot(snapshot).fields["fullName"] == "Ada Patient"
