# qtui/magnifier/window.py
from __future__ import annotations

import sys
from typing import Callable, Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QBrush, QColor, QCloseEvent, QKeyEvent, QMouseEvent, QPainter, QPainterPath, QPen, QWheelEvent
from PySide6.QtWidgets import QWidget

from huehunter.event_types import SurfaceEvent
from huehunter.events import EventEmitter
from huehunter.pick.grid import actual_cell_size
from huehunter.pick.surface import PixelGridUpdate, PositionUpdate


class MagnifierWindow(QWidget):
    """
    全屏透明置顶窗口，在鼠标处画放大镜：
    - 左键 / Enter：选中颜色
    - 右键 / Esc：取消
    - 滚轮：改变直径；Ctrl/Alt + 滚轮：改变格子密度
    - 窗口被关闭（Alt+F4 等）：CLOSED
    """

    LABEL_HEIGHT = 26

    def __init__(self, *, events: EventEmitter, on_closed: Callable[[], None], parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._events = events
        self._on_closed = on_closed
        self._announced_ready = False
        self._capture_excluded = False

        self._pos: Optional[PositionUpdate] = None
        self._grid: Optional[PixelGridUpdate] = None

        self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_DeleteOnClose, True)
        self.setCursor(Qt.BlankCursor)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMouseTracking(True)

    # ---------- updates from the session ----------

    def set_position(self, update: PositionUpdate) -> None:
        self._pos = update
        self.update()

    def set_pixel_grid(self, update: PixelGridUpdate) -> None:
        self._grid = update
        self.update()

    # ---------- capture exclusion ----------

    def _exclude_from_capture(self) -> bool:
        """
        Windows 10 2004+: keep this window out of screen grabs so the sampler
        sees the desktop under the magnifier, not the magnifier itself.
        """
        if not sys.platform.startswith("win"):
            return False
        try:
            import ctypes

            WDA_EXCLUDEFROMCAPTURE = 0x11
            user32 = ctypes.windll.user32
            return bool(user32.SetWindowDisplayAffinity(int(self.winId()), WDA_EXCLUDEFROMCAPTURE))
        except (AttributeError, OSError):
            return False

    # ---------- painting ----------

    def _local_center(self) -> Optional[QPointF]:
        p = self._pos
        if p is None:
            return None
        # sampler coordinates are physical pixels; widget coordinates are logical
        dpr = self.devicePixelRatioF() or 1.0
        return QPointF(p.x / dpr - p.display_x, p.y / dpr - p.display_y)

    def paintEvent(self, _event) -> None:
        center = self._local_center()
        g = self._grid
        if center is None or g is None or not g.pixels:
            return

        n = int(g.grid_size)
        rows = g.pixels
        # sampler may still be on a bigger/smaller grid after a zoom: crop around the centre
        off_r = (len(rows) - n) // 2
        off_c = (len(rows[0]) - n) // 2 if rows and rows[0] else 0

        d = float(g.diameter)
        cell = actual_cell_size(d, n)
        left = center.x() - d / 2.0
        top = center.y() - d / 2.0

        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing, True)

        clip = QPainterPath()
        clip.addEllipse(QRectF(left, top, d, d))
        if not self._capture_excluded:
            # 其它平台无法排除截屏：在被采样的区域挖洞，避免采到自己
            dpr = self.devicePixelRatioF() or 1.0
            hole = len(rows) / dpr + 2.0
            hole_path = QPainterPath()
            hole_path.addRect(QRectF(center.x() - hole / 2.0, center.y() - hole / 2.0, hole, hole))
            clip = clip.subtracted(hole_path)
        p.setClipPath(clip)
        p.setPen(Qt.NoPen)
        for r in range(n):
            rr = r + off_r
            if rr < 0 or rr >= len(rows):
                continue
            row = rows[rr]
            for c in range(n):
                cc = c + off_c
                if cc < 0 or cc >= len(row):
                    continue
                px = row[cc]
                p.setBrush(QBrush(QColor(px.r, px.g, px.b)))
                p.drawRect(QRectF(left + c * cell, top + r * cell, cell + 0.5, cell + 0.5))

        mid = n // 2
        p.setBrush(Qt.NoBrush)
        p.setPen(QPen(QColor(255, 255, 255), 2))
        p.drawRect(QRectF(left + mid * cell, top + mid * cell, cell, cell))
        p.setClipping(False)

        p.setPen(QPen(QColor(40, 40, 40), 3))
        p.drawEllipse(QRectF(left, top, d, d))

        text = f"{g.center_color.hex}  {g.color_name}"
        box = QRectF(center.x() - d / 2.0, top + d + 8, d, self.LABEL_HEIGHT)
        p.setPen(Qt.NoPen)
        p.setBrush(QBrush(QColor(20, 20, 20, 210)))
        p.drawRoundedRect(box, 6, 6)
        p.setPen(QColor(240, 240, 240))
        p.drawText(box, Qt.AlignCenter, text)
        p.end()

    # ---------- input ----------

    def showEvent(self, event) -> None:
        super().showEvent(event)
        if not self._announced_ready:
            self._announced_ready = True
            self._capture_excluded = self._exclude_from_capture()
            self._events.emit(SurfaceEvent.READY)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.LeftButton:
            self._events.emit(SurfaceEvent.COLOR_SELECTED)
        elif event.button() == Qt.RightButton:
            self._events.emit(SurfaceEvent.CANCELLED)
        super().mousePressEvent(event)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        key = event.key()
        if key == Qt.Key_Escape:
            self._events.emit(SurfaceEvent.CANCELLED)
            return
        if key in (Qt.Key_Return, Qt.Key_Enter, Qt.Key_Space):
            self._events.emit(SurfaceEvent.COLOR_SELECTED)
            return
        super().keyPressEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:
        dy = event.angleDelta().y()
        if dy == 0:
            return
        delta = 1 if dy > 0 else -1
        if event.modifiers() & (Qt.ControlModifier | Qt.AltModifier):
            self._events.emit(SurfaceEvent.ZOOM_DENSITY, delta)
        else:
            self._events.emit(SurfaceEvent.ZOOM_DIAMETER, delta)
        event.accept()

    def closeEvent(self, event: QCloseEvent) -> None:
        self._on_closed()
        self._events.emit(SurfaceEvent.CLOSED)
        super().closeEvent(event)
