# File: huehunter/event_types.py
from __future__ import annotations

from enum import Enum


class SurfaceEvent(str, Enum):
    """
    Events a magnifier surface emits towards the picking session.
    """

    READY = "ready"
    COLOR_SELECTED = "color_selected"
    CANCELLED = "cancelled"
    ZOOM_DIAMETER = "zoom_diameter"   # payload: delta (int)
    ZOOM_DENSITY = "zoom_density"     # payload: delta (int)
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


def as_surface_event(t: "SurfaceEvent | str") -> SurfaceEvent:
    if isinstance(t, SurfaceEvent):
        return t
    s = (t or "").strip().lower()
    try:
        return SurfaceEvent(s)
    except ValueError as e:
        raise ValueError(f"Unknown surface event: {t!r}") from e
