# File: huehunter/pick/surface.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Tuple

from huehunter.events import EventEmitter
from huehunter.sampler.protocol import PixelColor, PixelGrid


@dataclass(frozen=True)
class PositionUpdate:
    # cursor, absolute (virtual screen)
    x: int
    y: int
    # top-left of the surface, so the renderer can go abs -> local
    display_x: int
    display_y: int


@dataclass(frozen=True)
class PixelGridUpdate:
    center_color: PixelColor
    color_name: str
    pixels: PixelGrid
    diameter: float
    grid_size: int
    cell_size: float


class MagnifierSurface(Protocol):
    """
    What the picking session needs from the on-screen magnifier.

    `events` emits SurfaceEvent.*; handlers may be invoked from any thread.
    update_*/close may be called from the event loop thread; implementations
    marshal to their own UI thread.
    """

    events: EventEmitter

    async def show(self) -> None: ...

    def origin(self) -> Tuple[int, int]: ...

    def update_position(self, update: PositionUpdate) -> None: ...

    def update_pixel_grid(self, update: PixelGridUpdate) -> None: ...

    def close(self) -> None: ...

    def is_closed(self) -> bool: ...


SurfaceFactory = Callable[[], MagnifierSurface]
