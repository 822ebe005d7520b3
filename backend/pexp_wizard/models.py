from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union


TOTAL_STEPS = 5
STEP_TITLES = {
    1: "Welcome",
    2: "Pain Map",
    3: "Medical History",
    4: "Goals",
    5: "Review",
}
VIEWS = ("front", "back")
DEFAULT_INTENSITY = 5

FieldValue = Union[str, list[str]]


def intensity_level(intensity: int) -> str:
    if intensity <= 3:
        return "low"
    if intensity <= 7:
        return "medium"
    return "high"


def validate_intensity(intensity: int) -> int:
    if isinstance(intensity, bool) or not isinstance(intensity, int):
        raise ValueError(f"Intensity must be an integer, got {intensity!r}")
    if not 0 <= intensity <= 10:
        raise ValueError(f"Intensity must be between 0 and 10, got {intensity}")
    return intensity


@dataclass
class PainPoint:
    key: str
    view: str
    region: str
    original_name: str
    display_name: str
    x_percent: float
    y_percent: float
    intensity: int = DEFAULT_INTENSITY

    @property
    def intensity_level(self) -> str:
        return intensity_level(self.intensity)

    def as_snapshot(self) -> dict[str, object]:
        return {
            "key": self.key,
            "view": self.view,
            "region": self.region,
            "originalName": self.original_name,
            "displayName": self.display_name,
            "xPercent": self.x_percent,
            "yPercent": self.y_percent,
            "intensity": self.intensity,
            "intensityLevel": self.intensity_level,
        }


@dataclass
class AiSummaryState:
    content: str = ""
    error_message: str = ""
    payload_fingerprint: str = ""
    in_flight: bool = False


@dataclass
class WizardState:
    current_step: int = 1
    completed_steps: set[int] = field(default_factory=set)
    fields: dict[str, FieldValue] = field(default_factory=dict)
    pain_points: dict[str, PainPoint] = field(default_factory=dict)
    ai_summary: AiSummaryState = field(default_factory=AiSummaryState)
    saved_at: datetime | None = None

    @property
    def selected_areas(self) -> list[str]:
        return [point.display_name for point in self.pain_points.values()]

    @property
    def consent_given(self) -> bool:
        value = self.fields.get("consent")
        if isinstance(value, list):
            return bool(value)
        return bool(value) and value.lower() not in {"false", "off", "0"}

    def reset(self) -> None:
        self.current_step = 1
        self.completed_steps.clear()
        self.fields.clear()
        self.pain_points.clear()
        self.ai_summary = AiSummaryState()
        self.saved_at = None
