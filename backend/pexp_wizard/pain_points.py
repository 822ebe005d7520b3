"""Body-map pain point selection.

Clicks on the body diagram are resolved to the nearest named hotspot of the
active view. Front-view hotspot names are written from the viewer's side, so
their Left/Right is swapped to the patient's own side before it is shown or
stored. Points are persisted as percentages of the rendered diagram box so
markers can be redrawn at any size.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .hotspots import DEFAULT_HOTSPOTS, Hotspot
from .models import DEFAULT_INTENSITY, VIEWS, PainPoint, WizardState, intensity_level, validate_intensity

logger = logging.getLogger(__name__)

ALPHA_MISS_THRESHOLD = 10
_SIDE_RE = re.compile(r"\b(Left|Right|left|right|LEFT|RIGHT)\b")
_SIDE_SWAP = {
    "Left": "Right",
    "Right": "Left",
    "left": "right",
    "right": "left",
    "LEFT": "RIGHT",
    "RIGHT": "LEFT",
}


@dataclass(frozen=True)
class DiagramBox:
    left: float
    top: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        if self.width <= 0 or self.height <= 0:
            return False
        return self.left <= x <= self.left + self.width and self.top <= y <= self.top + self.height

    def relative(self, x: float, y: float) -> tuple[float, float]:
        return ((x - self.left) / self.width, (y - self.top) / self.height)

    def to_pixels(self, x_percent: float, y_percent: float) -> tuple[float, float]:
        return (
            self.left + self.width * x_percent / 100.0,
            self.top + self.height * y_percent / 100.0,
        )


@dataclass(frozen=True)
class AlphaMask:
    """Alpha channel of the diagram image, one byte per pixel in row-major order."""

    width: int
    height: int
    alpha: bytes

    def __post_init__(self) -> None:
        if len(self.alpha) != self.width * self.height:
            raise ValueError("Alpha buffer size does not match mask dimensions.")

    def alpha_at(self, px: int, py: int) -> int:
        px = min(self.width - 1, max(0, px))
        py = min(self.height - 1, max(0, py))
        return self.alpha[py * self.width + px]

    def sample(self, rel_x: float, rel_y: float) -> int:
        return self.alpha_at(int(rel_x * self.width), int(rel_y * self.height))


@dataclass(frozen=True)
class Resolution:
    kind: str
    view: str
    hotspot: Hotspot | None = None
    label: str = ""


def mirror_label(label: str) -> str:
    return _SIDE_RE.sub(lambda match: _SIDE_SWAP[match.group(0)], label)


def corrected_label(view: str, name: str) -> str:
    return mirror_label(name) if view == "front" else name


def resolve_click(
    view: str,
    x: float,
    y: float,
    box: DiagramBox,
    hotspots: dict[str, list[Hotspot]],
    alpha_mask: AlphaMask | None = None,
) -> Resolution:
    if not box.contains(x, y):
        return Resolution(kind="outside", view=view)

    rel_x, rel_y = box.relative(x, y)
    if alpha_mask is not None and alpha_mask.sample(rel_x, rel_y) < ALPHA_MISS_THRESHOLD:
        return Resolution(kind="transparent", view=view)

    candidates = hotspots.get(view) or []
    if not candidates:
        logger.warning("No hotspots configured for view '%s'; click ignored.", view)
        return Resolution(kind="no_hotspots", view=view)

    def distance(hotspot: Hotspot) -> float:
        center_x, center_y = hotspot.center
        return math.hypot(box.left + center_x * box.width - x, box.top + center_y * box.height - y)

    best = min(candidates, key=distance)
    return Resolution(kind="hit", view=view, hotspot=best, label=corrected_label(view, best.name))


def pain_point_key(view: str, hotspot_id: str, label: str) -> str:
    return f"{view}|{hotspot_id}|{label}"


@dataclass(frozen=True)
class Marker:
    key: str
    x_percent: float
    y_percent: float
    level: str
    label: str


class MarkerLayer:
    def __init__(self) -> None:
        self.markers: dict[str, Marker] = {}

    def place(self, point: PainPoint) -> Marker:
        marker = Marker(
            key=point.key,
            x_percent=point.x_percent,
            y_percent=point.y_percent,
            level=point.intensity_level,
            label=f"{point.display_name}: {point.intensity}/10",
        )
        self.markers[point.key] = marker
        return marker

    def remove(self, key: str) -> None:
        self.markers.pop(key, None)

    def clear(self) -> None:
        self.markers.clear()

    def positions(self, box: DiagramBox) -> dict[str, tuple[float, float]]:
        return {key: box.to_pixels(marker.x_percent, marker.y_percent) for key, marker in self.markers.items()}


@dataclass(frozen=True)
class PendingPainPoint:
    key: str
    view: str
    hotspot_id: str
    region: str
    original_name: str
    x_percent: float
    y_percent: float

    @property
    def display_name(self) -> str:
        return f"{self.region} ({self.view.capitalize()})"


@dataclass(frozen=True)
class ClickOutcome:
    kind: str
    key: str | None = None
    pending: PendingPainPoint | None = None
    removed: PainPoint | None = None


@dataclass
class PainPointRegistry:
    state: WizardState
    hotspots: dict[str, list[Hotspot]] = field(default_factory=lambda: dict(DEFAULT_HOTSPOTS))
    markers: MarkerLayer = field(default_factory=MarkerLayer)
    on_change: Callable[[], None] | None = None
    pending: PendingPainPoint | None = None

    def click(
        self,
        view: str,
        x: float,
        y: float,
        box: DiagramBox,
        alpha_mask: AlphaMask | None = None,
    ) -> ClickOutcome:
        if view not in VIEWS:
            raise ValueError(f"Unknown body view: {view}")
        resolution = resolve_click(view, x, y, box, self.hotspots, alpha_mask)
        if resolution.kind != "hit" or resolution.hotspot is None:
            return ClickOutcome(kind=resolution.kind)

        key = pain_point_key(view, resolution.hotspot.id, resolution.label)
        if key in self.state.pain_points:
            removed = self.remove(key)
            return ClickOutcome(kind="removed", key=key, removed=removed)

        rel_x, rel_y = box.relative(x, y)
        self.pending = PendingPainPoint(
            key=key,
            view=view,
            hotspot_id=resolution.hotspot.id,
            region=resolution.label,
            original_name=resolution.hotspot.name,
            x_percent=round(min(100.0, max(0.0, rel_x * 100.0)), 2),
            y_percent=round(min(100.0, max(0.0, rel_y * 100.0)), 2),
        )
        return ClickOutcome(kind="pending", key=key, pending=self.pending)

    def confirm(self, intensity: int | None = None) -> PainPoint:
        if self.pending is None:
            raise LookupError("No pending pain point to confirm.")
        value = validate_intensity(DEFAULT_INTENSITY if intensity is None else intensity)
        pending, self.pending = self.pending, None
        point = PainPoint(
            key=pending.key,
            view=pending.view,
            region=pending.region,
            original_name=pending.original_name,
            display_name=pending.display_name,
            x_percent=pending.x_percent,
            y_percent=pending.y_percent,
            intensity=value,
        )
        self.state.pain_points[point.key] = point
        self.markers.place(point)
        logger.debug("Pain point added: %s (%s)", point.key, intensity_level(value))
        self._changed()
        return point

    def cancel_pending(self) -> None:
        self.pending = None

    def remove(self, key: str) -> PainPoint | None:
        point = self.state.pain_points.pop(key, None)
        if point is None:
            return None
        self.markers.remove(key)
        self._changed()
        return point

    def clear(self) -> None:
        self.pending = None
        self.state.pain_points.clear()
        self.markers.clear()

    def restore(self, points: Iterable[PainPoint]) -> None:
        restored = list(points)
        self.clear()
        for point in restored:
            self.state.pain_points[point.key] = point
            self.markers.place(point)

    def selected_areas(self) -> list[str]:
        return self.state.selected_areas

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
