# qtui/widgets/color_swatch.py
from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QWidget


class ColorSwatch(QWidget):
    """
    颜色预览控件：色块 + "#RRGGBB" + 可选颜色名
    """

    def __init__(self, parent: QWidget | None = None, *, width: int = 64, height: int = 24) -> None:
        super().__init__(parent)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)

        self._frame = QFrame(self)
        self._frame.setFixedSize(width, height)
        self._frame.setFrameShape(QFrame.Box)
        self._frame.setFrameShadow(QFrame.Sunken)
        self._frame.setAutoFillBackground(True)
        layout.addWidget(self._frame)

        self._label = QLabel("-", self)
        self._label.setAlignment(Qt.AlignLeft | Qt.AlignVCenter)
        self._label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        layout.addWidget(self._label, 1)

    def set_hex(self, hx: str, name: str = "") -> bool:
        s = (hx or "").strip()
        if not s.startswith("#"):
            s = "#" + s
        color = QColor(s)
        if len(s) != 7 or not color.isValid():
            return False

        pal = self._frame.palette()
        pal.setColor(QPalette.Window, color)
        self._frame.setPalette(pal)
        self._label.setText(f"{s.upper()}  {name}" if name else s.upper())
        return True

    def clear(self, text: str = "-") -> None:
        pal = self._frame.palette()
        pal.setColor(QPalette.Window, self.palette().color(QPalette.Window))
        self._frame.setPalette(pal)
        self._label.setText(text)

    def get_hex(self) -> str:
        return self._label.text().split(" ", 1)[0]
