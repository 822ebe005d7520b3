from __future__ import annotations

from pexp_tools.prompt_builder import build_summary_prompt
from pexp_wizard.forms import IntakeSummaryPayload
from pexp_wizard.models import PainPoint, WizardState


def _state() -> WizardState:
    state = WizardState()
    state.fields.update(
        {
            "fullName": "Ada `Patient`",
            "email": "ada@example.com",
            "painDuration": "1-3-months",
            "painIntensity": "6",
            "painStart": "sports_injury",
            "medications": ["nsaids"],
            "dailyImpact": ["sleep", "work"],
            "goals": ["return-to-sport"],
            "timeline": "3-months",
        }
    )
    point = PainPoint(
        key="front|knee-r|Left Knee",
        view="front",
        region="Left Knee",
        original_name="Right Knee",
        display_name="Left Knee (Front)",
        x_percent=58.0,
        y_percent=65.0,
        intensity=8,
    )
    state.pain_points[point.key] = point
    return state


def test_prompt_includes_each_answered_section():
    prompt = build_summary_prompt(IntakeSummaryPayload.from_state(_state()))

    assert "- Name: Ada 'Patient'" in prompt
    assert "- Region: Left Knee (front view), Intensity: 8/10 (high)" in prompt
    assert "- Duration: 1-3-months" in prompt
    assert "- Onset: sports injury" in prompt
    assert "- Medications: nsaids" in prompt
    assert "- Limited activities: sleep, work" in prompt
    assert "No red flag symptoms reported" in prompt
    assert "- Goals: return to sport" in prompt
    assert "CLINICAL ANALYSIS INSTRUCTIONS" in prompt


def test_prompt_for_empty_payload_uses_placeholders():
    prompt = build_summary_prompt(IntakeSummaryPayload())

    assert "- Name: Not provided" in prompt
    assert "No pain areas marked" in prompt
    assert "Not specified by patient" in prompt
    assert "MEDICAL HISTORY" not in prompt


def test_red_flags_are_listed():
    state = _state()
    state.fields["redFlags"] = ["bowel_bladder"]

    prompt = build_summary_prompt(IntakeSummaryPayload.from_state(state))

    assert "RED FLAGS PRESENT\n- bowel bladder" in prompt
