"""
Grid sizing for the magnifier.

The sampled grid is always an odd number of cells per side (so there is a
single centre pixel) and never smaller than 3.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

MIN_GRID_SIZE = 3


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def grid_size(diameter: float, cell_size: float) -> int:
    """
    How many cells of `cell_size` fit across a circle of `diameter`.

    round(diameter / cell_size), bumped to the next odd number when even,
    floored at 3.
    """
    if cell_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size!r}")
    n = _round_half_up(float(diameter) / float(cell_size))
    if n % 2 == 0:
        n += 1
    if n < MIN_GRID_SIZE:
        n = MIN_GRID_SIZE
    return n


def buffered_grid_size(diameter: float, cell_size: float, buffer: int = 2) -> int:
    """
    grid_size() plus `buffer` extra cells on every side, still odd.

    The extra ring lets a renderer keep the circle filled while a zoom is
    in flight and the sampler has not caught up yet.
    """
    if buffer < 0:
        raise ValueError(f"buffer must be >= 0, got {buffer!r}")
    n = grid_size(diameter, cell_size) + 2 * int(buffer)
    return n + 1 if n % 2 == 0 else n


def actual_cell_size(diameter: float, grid: int) -> float:
    """
    Rendered cell size so that `grid` cells exactly span `diameter`
    (e.g. 182 px / 9 cells = 20.22 px).
    """
    if grid <= 0:
        raise ValueError(f"grid must be positive, got {grid!r}")
    return float(diameter) / float(grid)


@dataclass(frozen=True)
class GridConfig:
    diameter: float
    cell_size: float
    grid_size: int
    buffer: int = 0

    @staticmethod
    def from_dimensions(diameter: float, cell_size: float, *, buffer: int = 0) -> "GridConfig":
        return GridConfig(
            diameter=float(diameter),
            cell_size=float(cell_size),
            grid_size=grid_size(diameter, cell_size),
            buffer=int(buffer),
        )

    def with_diameter(self, diameter: float) -> "GridConfig":
        return GridConfig.from_dimensions(diameter, self.cell_size, buffer=self.buffer)

    def with_cell_size(self, cell_size: float) -> "GridConfig":
        return GridConfig.from_dimensions(self.diameter, cell_size, buffer=self.buffer)

    @property
    def sample_grid_size(self) -> int:
        """Grid size requested from the sampler (grid_size when buffer == 0)."""
        if self.buffer <= 0:
            return self.grid_size
        return buffered_grid_size(self.diameter, self.cell_size, self.buffer)

    @property
    def actual_cell_size(self) -> float:
        return actual_cell_size(self.diameter, self.grid_size)


__all__ = [
    "MIN_GRID_SIZE",
    "GridConfig",
    "actual_cell_size",
    "buffered_grid_size",
    "grid_size",
]
