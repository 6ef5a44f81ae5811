# qtui/magnifier/surface.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from PySide6.QtGui import QCursor, QGuiApplication

from huehunter.events import EventEmitter
from huehunter.pick.surface import PixelGridUpdate, PositionUpdate
from qtui.dispatcher import QtDispatcher
from qtui.magnifier.window import MagnifierWindow

log = logging.getLogger(__name__)


class QtMagnifierSurface:
    """
    MagnifierSurface for the picking session, backed by MagnifierWindow.

    Called from the asyncio thread; every touch of the widget goes through
    the QtDispatcher. A new instance is made per pick.
    """

    def __init__(self, dispatcher: QtDispatcher) -> None:
        self.events = EventEmitter()
        self._dispatcher = dispatcher
        self._window: Optional[MagnifierWindow] = None  # Qt thread only
        self._origin: Tuple[int, int] = (0, 0)
        self._closed = False

    async def show(self) -> None:
        await asyncio.wrap_future(self._dispatcher.submit(self._create_and_show))

    def origin(self) -> Tuple[int, int]:
        return self._origin

    def update_position(self, update: PositionUpdate) -> None:
        self._dispatcher.call_soon(lambda: self._with_window(lambda w: w.set_position(update)))

    def update_pixel_grid(self, update: PixelGridUpdate) -> None:
        self._dispatcher.call_soon(lambda: self._with_window(lambda w: w.set_pixel_grid(update)))

    def close(self) -> None:
        self._closed = True
        self._dispatcher.call_soon(self._close_window)

    def is_closed(self) -> bool:
        return self._closed

    # ---------- Qt thread ----------

    def _create_and_show(self) -> None:
        screen = QGuiApplication.screenAt(QCursor.pos()) or QGuiApplication.primaryScreen()
        geo = screen.geometry()
        win = MagnifierWindow(events=self.events, on_closed=self._mark_closed)
        win.setGeometry(geo)
        self._origin = (geo.x(), geo.y())
        self._window = win
        win.show()
        win.raise_()
        win.activateWindow()
        log.debug("magnifier shown on %s at %s", screen.name(), self._origin)

    def _with_window(self, fn) -> None:
        win = self._window
        if win is not None and not self._closed:
            fn(win)

    def _mark_closed(self) -> None:
        self._closed = True
        self._window = None

    def _close_window(self) -> None:
        win = self._window
        self._window = None
        if win is not None:
            win.close()
