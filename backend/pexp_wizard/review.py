from __future__ import annotations

from dataclasses import dataclass, field

from .forms import as_list, as_text
from .models import WizardState

EMPTY_REVIEW_TEXT = "No information entered yet."


@dataclass
class ReviewSection:
    title: str
    items: list[tuple[str, str]] = field(default_factory=list)

    def add(self, label: str, value: str) -> None:
        if value:
            self.items.append((label, value))


def build_review(state: WizardState) -> list[ReviewSection]:
    fields = state.fields

    personal = ReviewSection("Personal Information")
    personal.add("Name", as_text(fields.get("fullName")))
    personal.add("Email", as_text(fields.get("email")))
    personal.add("Phone", as_text(fields.get("phone")))
    personal.add("Date of Birth", as_text(fields.get("dob")))

    pain = ReviewSection("Pain Information")
    if state.pain_points:
        pain.add(
            "Pain Areas",
            ", ".join(f"{point.display_name} ({point.intensity}/10)" for point in state.pain_points.values()),
        )
    pain.add("Duration", as_text(fields.get("painDuration")))
    intensity = as_text(fields.get("painIntensity"))
    if intensity:
        pain.add("Intensity", f"{intensity}/10")

    sections = [personal, pain]

    pain_start = as_text(fields.get("painStart"))
    red_flags = as_list(fields.get("redFlags"))
    if pain_start or red_flags:
        history = ReviewSection("Medical History")
        history.add("How it started", pain_start)
        history.add("Red Flags", ", ".join(red_flags))
        sections.append(history)

    goals = as_list(fields.get("goals"))
    if goals:
        treatment = ReviewSection("Treatment Goals")
        treatment.add("Goals", ", ".join(goals))
        treatment.add("Timeline", as_text(fields.get("timeline")))
        sections.append(treatment)

    return sections


def render_review_text(sections: list[ReviewSection]) -> str:
    lines: list[str] = []
    for section in sections:
        if not section.items:
            continue
        if lines:
            lines.append("")
        lines.append(section.title)
        lines.extend(f"  {label}: {value}" for label, value in section.items)
    return "\n".join(lines) or EMPTY_REVIEW_TEXT
