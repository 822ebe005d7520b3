from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Hotspot:
    id: str
    name: str
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


def _spot(hotspot_id: str, name: str, x: float, y: float, width: float, height: float) -> Hotspot:
    return Hotspot(id=hotspot_id, name=name, x=x, y=y, width=width, height=height)


# Names are from the viewer's side of the diagram; the registry mirrors front-view labels.
DEFAULT_HOTSPOTS: dict[str, list[Hotspot]] = {
    "front": [
        _spot("head", "Head", 0.42, 0.02, 0.16, 0.09),
        _spot("neck", "Neck", 0.45, 0.11, 0.10, 0.04),
        _spot("shoulder-l", "Left Shoulder", 0.28, 0.15, 0.12, 0.06),
        _spot("shoulder-r", "Right Shoulder", 0.60, 0.15, 0.12, 0.06),
        _spot("chest", "Chest", 0.38, 0.17, 0.24, 0.10),
        _spot("upper-arm-l", "Left Upper Arm", 0.24, 0.21, 0.09, 0.11),
        _spot("upper-arm-r", "Right Upper Arm", 0.67, 0.21, 0.09, 0.11),
        _spot("elbow-l", "Left Elbow", 0.21, 0.32, 0.08, 0.05),
        _spot("elbow-r", "Right Elbow", 0.71, 0.32, 0.08, 0.05),
        _spot("abdomen", "Abdomen", 0.39, 0.28, 0.22, 0.12),
        _spot("forearm-l", "Left Forearm", 0.17, 0.37, 0.08, 0.09),
        _spot("forearm-r", "Right Forearm", 0.75, 0.37, 0.08, 0.09),
        _spot("wrist-hand-l", "Left Wrist/Hand", 0.12, 0.46, 0.09, 0.08),
        _spot("wrist-hand-r", "Right Wrist/Hand", 0.79, 0.46, 0.09, 0.08),
        _spot("hip-l", "Left Hip", 0.36, 0.40, 0.12, 0.07),
        _spot("hip-r", "Right Hip", 0.52, 0.40, 0.12, 0.07),
        _spot("thigh-l", "Left Thigh", 0.36, 0.48, 0.12, 0.14),
        _spot("thigh-r", "Right Thigh", 0.52, 0.48, 0.12, 0.14),
        _spot("knee-l", "Left Knee", 0.37, 0.62, 0.10, 0.06),
        _spot("knee-r", "Right Knee", 0.53, 0.62, 0.10, 0.06),
        _spot("shin-l", "Left Shin", 0.37, 0.69, 0.09, 0.15),
        _spot("shin-r", "Right Shin", 0.54, 0.69, 0.09, 0.15),
        _spot("ankle-foot-l", "Left Ankle/Foot", 0.35, 0.86, 0.11, 0.10),
        _spot("ankle-foot-r", "Right Ankle/Foot", 0.54, 0.86, 0.11, 0.10),
    ],
    "back": [
        _spot("head-back", "Back of Head", 0.42, 0.02, 0.16, 0.09),
        _spot("neck-back", "Back of Neck", 0.45, 0.11, 0.10, 0.04),
        _spot("shoulder-blade-l", "Left Shoulder Blade", 0.30, 0.16, 0.14, 0.09),
        _spot("shoulder-blade-r", "Right Shoulder Blade", 0.56, 0.16, 0.14, 0.09),
        _spot("upper-back", "Upper Back", 0.42, 0.16, 0.16, 0.10),
        _spot("mid-back", "Mid Back", 0.40, 0.26, 0.20, 0.08),
        _spot("lower-back", "Lower Back", 0.40, 0.34, 0.20, 0.07),
        _spot("elbow-back-l", "Left Elbow", 0.21, 0.32, 0.08, 0.05),
        _spot("elbow-back-r", "Right Elbow", 0.71, 0.32, 0.08, 0.05),
        _spot("glute-l", "Left Buttock", 0.36, 0.41, 0.13, 0.08),
        _spot("glute-r", "Right Buttock", 0.51, 0.41, 0.13, 0.08),
        _spot("hamstring-l", "Left Hamstring", 0.36, 0.49, 0.12, 0.13),
        _spot("hamstring-r", "Right Hamstring", 0.52, 0.49, 0.12, 0.13),
        _spot("knee-back-l", "Back of Left Knee", 0.37, 0.62, 0.10, 0.06),
        _spot("knee-back-r", "Back of Right Knee", 0.53, 0.62, 0.10, 0.06),
        _spot("calf-l", "Left Calf", 0.37, 0.69, 0.09, 0.15),
        _spot("calf-r", "Right Calf", 0.54, 0.69, 0.09, 0.15),
        _spot("heel-l", "Left Heel", 0.36, 0.86, 0.10, 0.08),
        _spot("heel-r", "Right Heel", 0.54, 0.86, 0.10, 0.08),
    ],
}


def load_hotspots(raw: str | dict[str, Any]) -> dict[str, list[Hotspot]]:
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ValueError("Hotspot data must map a view name to a list of hotspots.")
    loaded: dict[str, list[Hotspot]] = {}
    for view, items in data.items():
        if not isinstance(items, list):
            raise ValueError(f"Hotspots for view '{view}' must be a list.")
        loaded[view] = [
            Hotspot(
                id=str(item["id"]),
                name=str(item["name"]),
                x=float(item["x"]),
                y=float(item["y"]),
                width=float(item["width"]),
                height=float(item["height"]),
            )
            for item in items
        ]
    return loaded
