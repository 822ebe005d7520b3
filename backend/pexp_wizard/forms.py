from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from .models import FieldValue, WizardState


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    step: int
    kind: str = "text"
    required: bool = False
    multiple: bool = False
    min_value: int | None = None
    max_value: int | None = None


INTAKE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("fullName", "Full Name", 1, required=True),
    FieldSpec("email", "Email Address", 1, kind="email", required=True),
    FieldSpec("phone", "Phone Number", 1, kind="tel"),
    FieldSpec("dob", "Date of Birth", 1, kind="date"),
    FieldSpec("painDuration", "Pain Duration", 2, kind="select", required=True),
    FieldSpec("painIntensity", "Pain Intensity", 2, kind="range", min_value=0, max_value=10),
    FieldSpec("painStart", "How it started", 3, kind="select"),
    FieldSpec("prevOrtho", "Previous orthopedic history", 3, kind="checkbox", multiple=True),
    FieldSpec("currentTreatments", "Current treatments", 3, kind="checkbox", multiple=True),
    FieldSpec("medications", "Medications", 3, kind="checkbox", multiple=True),
    FieldSpec("mobilityAids", "Mobility aids", 3, kind="checkbox", multiple=True),
    FieldSpec("dailyImpact", "Daily impact", 3, kind="checkbox", multiple=True),
    FieldSpec("additionalHistory", "Additional history", 3, kind="checkbox", multiple=True),
    FieldSpec("redFlags", "Red Flags", 3, kind="checkbox", multiple=True),
    FieldSpec("goals", "Goals", 4, kind="checkbox", multiple=True),
    FieldSpec("timeline", "Timeline", 4, kind="select"),
    FieldSpec("milestones", "Milestones", 4, kind="checkbox", multiple=True),
    FieldSpec("concerns", "Concerns", 4, kind="checkbox", multiple=True),
    FieldSpec("consent", "Consent", 5, kind="checkbox", required=True),
)

FIELDS_BY_NAME = {spec.name: spec for spec in INTAKE_FIELDS}


def fields_for_step(step: int, fields: tuple[FieldSpec, ...] = INTAKE_FIELDS) -> list[FieldSpec]:
    return [spec for spec in fields if spec.step == step]


def as_list(value: FieldValue | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if item]
    return [value] if value else []


def as_text(value: FieldValue | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(item for item in value if item)
    return value.strip()


def _optional_text(fields: dict[str, FieldValue], name: str) -> str | None:
    return as_text(fields.get(name)) or None


def _optional_int(fields: dict[str, FieldValue], name: str) -> int | None:
    raw = as_text(fields.get(name))
    if not raw:
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


class PersonalInfo(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None


class PainArea(BaseModel):
    region: str
    view: str | None = None
    original_name: str | None = None
    intensity: int | None = None
    intensity_level: str | None = None


class PainTiming(BaseModel):
    duration: str | None = None
    overall_intensity: int | None = None
    onset: str | None = None


class MedicalHistory(BaseModel):
    previous_orthopedic: list[str] = Field(default_factory=list)
    current_treatments: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    mobility_aids: list[str] = Field(default_factory=list)
    daily_impact: list[str] = Field(default_factory=list)
    comorbidities: list[str] = Field(default_factory=list)


class RedFlags(BaseModel):
    reasons: list[str] = Field(default_factory=list)

    @property
    def present(self) -> bool:
        return bool(self.reasons)


class TreatmentGoals(BaseModel):
    goals: list[str] = Field(default_factory=list)
    timeline: str | None = None
    milestones: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


class IntakeSummaryPayload(BaseModel):
    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    pain_areas: list[PainArea] = Field(default_factory=list)
    selected_areas: list[str] = Field(default_factory=list)
    timing: PainTiming = Field(default_factory=PainTiming)
    history: MedicalHistory = Field(default_factory=MedicalHistory)
    red_flags: RedFlags = Field(default_factory=RedFlags)
    goals: TreatmentGoals = Field(default_factory=TreatmentGoals)

    @classmethod
    def from_state(cls, state: WizardState) -> "IntakeSummaryPayload":
        fields = state.fields
        return cls(
            personal=PersonalInfo(
                full_name=_optional_text(fields, "fullName"),
                email=_optional_text(fields, "email"),
                phone=_optional_text(fields, "phone"),
                date_of_birth=_optional_text(fields, "dob"),
            ),
            pain_areas=[
                PainArea(
                    region=point.region,
                    view=point.view,
                    original_name=point.original_name,
                    intensity=point.intensity,
                    intensity_level=point.intensity_level,
                )
                for point in state.pain_points.values()
            ],
            selected_areas=state.selected_areas,
            timing=PainTiming(
                duration=_optional_text(fields, "painDuration"),
                overall_intensity=_optional_int(fields, "painIntensity"),
                onset=_optional_text(fields, "painStart"),
            ),
            history=MedicalHistory(
                previous_orthopedic=as_list(fields.get("prevOrtho")),
                current_treatments=as_list(fields.get("currentTreatments")),
                medications=as_list(fields.get("medications")),
                mobility_aids=as_list(fields.get("mobilityAids")),
                daily_impact=as_list(fields.get("dailyImpact")),
                comorbidities=as_list(fields.get("additionalHistory")),
            ),
            red_flags=RedFlags(reasons=as_list(fields.get("redFlags"))),
            goals=TreatmentGoals(
                goals=as_list(fields.get("goals")),
                timeline=_optional_text(fields, "timeline"),
                milestones=as_list(fields.get("milestones")),
                concerns=as_list(fields.get("concerns")),
            ),
        )

    def as_request_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
