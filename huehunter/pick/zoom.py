from __future__ import annotations

from typing import Sequence

DIAMETER_STEPS: tuple[int, ...] = (120, 180, 240, 300, 360, 420)

CELL_SIZE_MIN = 10
CELL_SIZE_MAX = 40
CELL_SIZE_STEP = 5


def _sign(delta: float) -> int:
    if delta > 0:
        return 1
    if delta < 0:
        return -1
    return 0


def next_diameter(current: float, delta: float, steps: Sequence[int] = DIAMETER_STEPS) -> int:
    """
    Move one step up (delta > 0) or down (delta < 0) the diameter ladder.

    A `current` that is not on the ladder snaps to the nearest step first.
    Clamped at both ends, so the result may equal `current`.
    """
    if not steps:
        raise ValueError("steps must not be empty")
    idx = min(range(len(steps)), key=lambda i: abs(steps[i] - current))
    idx += _sign(delta)
    idx = max(0, min(len(steps) - 1, idx))
    return int(steps[idx])


def adjust_cell_size(current: float, delta: float) -> int:
    """
    Grow (delta > 0) or shrink (delta < 0) the cell size by one step,
    within [CELL_SIZE_MIN, CELL_SIZE_MAX].
    """
    v = int(round(current)) + _sign(delta) * CELL_SIZE_STEP
    if v < CELL_SIZE_MIN:
        return CELL_SIZE_MIN
    if v > CELL_SIZE_MAX:
        return CELL_SIZE_MAX
    return v
