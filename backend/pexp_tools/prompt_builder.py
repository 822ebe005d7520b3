from __future__ import annotations

import re

from pexp_wizard.forms import IntakeSummaryPayload

_WORD_HYPHEN_RE = re.compile(r"(?<=[A-Za-z])-(?=[A-Za-z])")

ANALYSIS_INSTRUCTIONS = """
=================================================================================
CLINICAL ANALYSIS INSTRUCTIONS:
=================================================================================
Your task is to provide a comprehensive clinical analysis for a healthcare provider.

ANALYSIS REQUIREMENTS:
1. **Pain Presentation**: Synthesize the pain location(s), intensity, timing, and onset
2. **Functional Impact**: Assess how pain affects daily activities and quality of life
3. **Medical Context**: Consider relevant history, comorbidities, medications and current treatments
4. **Red Flag Assessment**: Evaluate urgency based on red flag symptoms:
   - HIGH_URGENCY: Bowel/bladder dysfunction, saddle anesthesia, progressive weakness, severe neurological deficits
   - MODERATE_URGENCY: Fever, unexplained weight loss, night pain, cancer history with new pain
   - LOW_URGENCY: No significant red flags
5. **Treatment Alignment**: Address the patient's stated goals, timeline and concerns
6. **Clinical Reasoning**: Provide differential considerations (NOT definitive diagnoses)
7. **Recommendations**: Suggest appropriate next steps and triage level

RESPONSE FORMAT:
Respond with an HTML fragment (no <html> or <body> tags) structured as follows:

<h3>Clinical Overview</h3>
[Synthesize the complete pain presentation in 2-3 sentences]

<h3>Key Findings</h3>
- Pain Pattern: [Distribution, intensity, timing]
- Functional Impact: [Daily activities affected]
- Medical Context: [Pertinent history and treatments]
- Red Flags: [List any present, or state "None identified"]

<h3>Clinical Considerations</h3>
[Discuss possible pathologies to consider - use conditional language, NOT definitive diagnoses]

<h3>Recommendations</h3>
- Urgency: [HIGH_URGENCY, MODERATE_URGENCY, or LOW_URGENCY]
- Next Steps: [Specific actions for healthcare provider]
- Patient Goals: [How to address treatment preferences]

Write professionally for a clinician audience. Be thorough but concise.
"""


def _sanitize(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.replace("`", "'").strip()


def _humanize(value: str) -> str:
    return _WORD_HYPHEN_RE.sub(" ", _sanitize(value).replace("_", " "))


def _bullet_list(title: str, items: list[str]) -> list[str]:
    cleaned = [_humanize(item) for item in items if _sanitize(item)]
    if not cleaned:
        return []
    return [f"- {title}: {', '.join(cleaned)}"]


def build_summary_prompt(payload: IntakeSummaryPayload) -> str:
    personal = payload.personal
    lines = [
        "You are a clinical AI assistant analyzing a comprehensive pain assessment form.",
        "",
        "PATIENT INFORMATION:",
        f"- Name: {_sanitize(personal.full_name) or 'Not provided'}",
        f"- Email: {_sanitize(personal.email) or 'Not provided'}",
    ]
    if personal.date_of_birth:
        lines.append(f"- Date of Birth: {_sanitize(personal.date_of_birth)}")
    if personal.phone:
        lines.append(f"- Phone: {_sanitize(personal.phone)}")

    lines += ["", "PAIN MAPPING DATA:"]
    if payload.pain_areas:
        for area in payload.pain_areas:
            entry = f"- Region: {_sanitize(area.region)}"
            if area.view:
                entry += f" ({area.view} view)"
            intensity = area.intensity if area.intensity is not None else "Not provided"
            entry += f", Intensity: {intensity}/10"
            if area.intensity_level:
                entry += f" ({area.intensity_level})"
            lines.append(entry)
    elif payload.selected_areas:
        lines += [f"- {_sanitize(area)}" for area in payload.selected_areas]
    else:
        lines.append("No pain areas marked")

    timing = payload.timing
    timing_lines: list[str] = []
    if timing.duration:
        timing_lines.append(f"- Duration: {_humanize(timing.duration)}")
    if timing.overall_intensity is not None:
        timing_lines.append(f"- Overall intensity: {timing.overall_intensity}/10")
    if timing.onset:
        timing_lines.append(f"- Onset: {_humanize(timing.onset)}")
    if timing_lines:
        lines += ["", "PAIN TIMING & PATTERN:", *timing_lines]

    history = payload.history
    history_lines = (
        _bullet_list("Previous orthopedic history", history.previous_orthopedic)
        + _bullet_list("Current treatments", history.current_treatments)
        + _bullet_list("Medications", history.medications)
        + _bullet_list("Mobility aids", history.mobility_aids)
        + _bullet_list("Medical conditions", history.comorbidities)
    )
    if history_lines:
        lines += ["", "MEDICAL HISTORY:", *history_lines]

    impact = _bullet_list("Limited activities", history.daily_impact)
    if impact:
        lines += ["", "FUNCTIONAL IMPACT:", *impact]

    lines += ["", "RED FLAG SYMPTOMS:"]
    if payload.red_flags.present:
        lines.append("RED FLAGS PRESENT")
        lines += [f"- {_humanize(reason)}" for reason in payload.red_flags.reasons]
    else:
        lines.append("No red flag symptoms reported")

    goals = payload.goals
    lines += ["", "TREATMENT GOALS:"]
    goal_lines = (
        _bullet_list("Goals", goals.goals)
        + ([f"- Timeline: {_humanize(goals.timeline)}"] if goals.timeline else [])
        + _bullet_list("Milestones", goals.milestones)
        + _bullet_list("Concerns", goals.concerns)
    )
    lines += goal_lines or ["Not specified by patient"]

    lines += ["", ANALYSIS_INSTRUCTIONS.strip(), ""]
    return "\n".join(lines)
