# qtui/dispatcher.py
from __future__ import annotations

import concurrent.futures
import logging
from typing import Callable, TypeVar

from PySide6.QtCore import QObject, Signal, Slot

log = logging.getLogger(__name__)

T = TypeVar("T")


class QtDispatcher(QObject):
    """
    UI 线程调度器：
    - 任意线程（asyncio 循环线程、pynput 线程）调用 call_soon(fn) / submit(fn)
    - fn 排队到 Qt 主线程执行
    """

    _sig_call = Signal(object)  # fn: Callable[[], None]

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._sig_call.connect(self._on_call)

    def call_soon(self, fn: Callable[[], None]) -> None:
        if fn is None:
            return
        self._sig_call.emit(fn)

    def submit(self, fn: Callable[[], T]) -> "concurrent.futures.Future[T]":
        """Run fn on the Qt thread; the future carries its result or exception."""
        fut: "concurrent.futures.Future[T]" = concurrent.futures.Future()

        def _run() -> None:
            if not fut.set_running_or_notify_cancel():
                return
            try:
                fut.set_result(fn())
            except BaseException as e:
                fut.set_exception(e)

        self._sig_call.emit(_run)
        return fut

    @Slot(object)
    def _on_call(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            # 不让异常终止事件循环
            log.exception("dispatched call failed")
