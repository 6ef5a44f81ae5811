# qtui/main_window.py
from __future__ import annotations

import concurrent.futures
import logging
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent, QGuiApplication
from PySide6.QtWidgets import QHBoxLayout, QLabel, QMainWindow, QPushButton, QVBoxLayout, QWidget

from huehunter.events import Registration
from huehunter.input.hotkeys import HotkeyRegistrar
from huehunter.pick.session import ColorPicker, SessionState
from huehunter.runtime.loop_thread import LoopThread
from qtui.dispatcher import QtDispatcher
from qtui.status_bar import StatusController
from qtui.widgets.color_swatch import ColorSwatch

log = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """
    启动窗口：

    - "Pick color" 按钮 / 全局热键：开始一次取色
    - ColorSwatch 显示最近一次结果，"Copy" 复制 hex
    - 取色在 LoopThread 上运行，结果经 QtDispatcher 回到 GUI 线程
    """

    def __init__(
        self,
        *,
        picker: ColorPicker,
        loop_thread: LoopThread,
        dispatcher: QtDispatcher,
        hotkeys: Optional[HotkeyRegistrar] = None,
        start_hotkey: str = "",
    ) -> None:
        super().__init__()
        self._picker = picker
        self._loop_thread = loop_thread
        self._dispatcher = dispatcher
        self._hotkey_reg: Optional[Registration] = None
        self._pending: Optional[concurrent.futures.Future] = None

        self.setWindowTitle("Hue Hunter")
        self.setMinimumWidth(320)

        root = QWidget(self)
        lay = QVBoxLayout(root)
        lay.setContentsMargins(12, 12, 12, 12)
        lay.setSpacing(10)

        self._btn_pick = QPushButton("Pick color", root)
        self._btn_pick.clicked.connect(self.start_pick)
        lay.addWidget(self._btn_pick)

        row = QHBoxLayout()
        row.addWidget(QLabel("Last:", root))
        self._swatch = ColorSwatch(root)
        row.addWidget(self._swatch)
        self._lbl_hex = QLabel("-", root)
        self._lbl_hex.setTextInteractionFlags(Qt.TextSelectableByMouse)
        row.addWidget(self._lbl_hex, 1)
        self._btn_copy = QPushButton("Copy", root)
        self._btn_copy.setEnabled(False)
        self._btn_copy.clicked.connect(self._copy_hex)
        row.addWidget(self._btn_copy)
        lay.addLayout(row)

        self.setCentralWidget(root)
        self._status = StatusController(self)

        if hotkeys is not None and start_hotkey:
            try:
                # 回调在 pynput 线程里触发，转回 GUI 线程
                self._hotkey_reg = hotkeys.register(start_hotkey, lambda: self._dispatcher.call_soon(self.start_pick))
                self._status.set_hint(f"hotkey: {start_hotkey}")
            except (ValueError, OSError) as e:
                log.error("start-pick hotkey %r not registered: %s", start_hotkey, e)
                self._status.error(f"hotkey {start_hotkey!r} unavailable")

    # ---------- pick ----------

    def start_pick(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._status.info("pick already in progress")
            return
        if self._picker.state is not SessionState.IDLE:
            self._status.info("picker busy")
            return

        self._btn_pick.setEnabled(False)
        self._status.set_status("picking...")
        fut = self._loop_thread.submit(self._picker.pick_color())
        self._pending = fut
        fut.add_done_callback(lambda f: self._dispatcher.call_soon(lambda: self._on_pick_done(f)))

    def _on_pick_done(self, fut: concurrent.futures.Future) -> None:
        if fut is self._pending:
            self._pending = None
        self._btn_pick.setEnabled(True)

        if fut.cancelled():
            self._status.info("pick cancelled")
            return
        exc = fut.exception()
        if exc is not None:
            log.error("pick failed: %s", exc)
            self._status.error(str(exc))
            return

        hx = fut.result()
        if not hx:
            self._status.info("no color picked")
            return
        self._swatch.set_hex(hx)
        self._lbl_hex.setText(hx)
        self._btn_copy.setEnabled(True)
        self._status.info(f"picked {hx}")

    def _copy_hex(self) -> None:
        hx = self._swatch.get_hex()
        if not hx:
            return
        QGuiApplication.clipboard().setText(hx)
        self._status.info(f"copied {hx}", ttl_ms=1500)

    # ---------- close ----------

    def closeEvent(self, event: QCloseEvent) -> None:
        reg, self._hotkey_reg = self._hotkey_reg, None
        if reg is not None:
            reg.release()
        self._picker.cancel()
        super().closeEvent(event)
