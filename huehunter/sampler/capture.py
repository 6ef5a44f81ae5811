from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Tuple

import mss
from pynput import mouse

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Rect:
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height


class MssGridCapture:
    """
    Grabs a square of pixels around the mouse cursor with mss.

    - One mss.mss() per thread via threading.local().
    - Pixels outside the virtual screen come back black.
    """

    OUTSIDE: RGB = (0, 0, 0)

    def __init__(self) -> None:
        self._local = threading.local()
        self._mouse = mouse.Controller()

    def _get_sct(self) -> mss.base.MSSBase:
        sct = getattr(self._local, "sct", None)
        if sct is None:
            sct = mss.mss()
            self._local.sct = sct
        return sct

    def close(self) -> None:
        sct = getattr(self._local, "sct", None)
        if sct is not None:
            self._local.sct = None
            sct.close()

    def virtual_rect(self) -> Rect:
        m = self._get_sct().monitors[0]
        return Rect(left=int(m["left"]), top=int(m["top"]), width=int(m["width"]), height=int(m["height"]))

    def cursor(self) -> Tuple[int, int]:
        x, y = self._mouse.position
        return int(x), int(y)

    def grab(self, cx: int, cy: int, size: int) -> List[List[RGB]]:
        """
        size x size pixels centred on (cx, cy), row-major.
        """
        half = size // 2
        want = Rect(left=cx - half, top=cy - half, width=size, height=size)
        screen = self.virtual_rect()

        left = max(want.left, screen.left)
        top = max(want.top, screen.top)
        right = min(want.right, screen.right)
        bottom = min(want.bottom, screen.bottom)

        grid: List[List[RGB]] = [[self.OUTSIDE] * size for _ in range(size)]
        if right <= left or bottom <= top:
            return grid

        w = right - left
        h = bottom - top
        img = self._get_sct().grab({"left": left, "top": top, "width": w, "height": h})
        raw = img.raw  # BGRA
        for row in range(h):
            gy = top - want.top + row
            base = row * w * 4
            out_row = grid[gy]
            for col in range(w):
                i = base + col * 4
                out_row[left - want.left + col] = (raw[i + 2], raw[i + 1], raw[i])
        return grid
