from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

from huehunter.logging_setup import install_loop_exception_handler

log = logging.getLogger(__name__)

T = TypeVar("T")


class LoopThread:
    """
    Runs an asyncio event loop on a daemon thread so that a GUI toolkit can
    keep the main thread. submit() is safe from any thread.
    """

    def __init__(self, name: str = "huehunter-loop") -> None:
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("loop thread not started")
        return self._loop

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self, timeout: float = 5.0) -> None:
        loop = self._loop
        th = self._thread
        if loop is None or th is None:
            return
        if loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        th.join(timeout=timeout)
        if th.is_alive():
            log.warning("event loop thread did not stop within %.1fs", timeout)
        self._thread = None

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        install_loop_exception_handler(loop)
        self._loop = loop
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None
            log.debug("event loop thread exited")
