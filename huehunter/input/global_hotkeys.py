from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from pynput import keyboard

from huehunter.events import Registration
from huehunter.input.hotkeys import to_pynput_hotkey

log = logging.getLogger(__name__)


class GlobalHotkeyService:
    """
    HotkeyRegistrar backed by pynput.keyboard.GlobalHotKeys.

    GlobalHotKeys takes a fixed mapping, so every register()/release()
    rebuilds the listener from the current table. Callbacks run on the pynput
    listener thread.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._table: Dict[str, List[List[Callable[[], None]]]] = {}
        self._listener: Optional[keyboard.GlobalHotKeys] = None

    def register(self, hotkey: str, callback: Callable[[], None]) -> Registration:
        combo = to_pynput_hotkey(hotkey)
        slot = [callback]
        with self._lock:
            self._table.setdefault(combo, []).append(slot)
            try:
                self._restart_locked()
            except OSError:
                self._drop_locked(combo, slot)
                raise
        log.info("global hotkey registered: %s", combo)

        def _release() -> None:
            with self._lock:
                self._drop_locked(combo, slot)
                self._restart_locked()
            log.info("global hotkey released: %s", combo)

        return Registration(_release, name=combo)

    def close(self) -> None:
        with self._lock:
            self._table.clear()
            self._stop_locked()

    def _fire(self, combo: str) -> None:
        with self._lock:
            slots = list(self._table.get(combo, []))
        for slot in slots:
            try:
                slot[0]()
            except Exception:
                # 不崩监听线程
                log.exception("hotkey callback for %s failed", combo)

    def _drop_locked(self, combo: str, slot: List[Callable[[], None]]) -> None:
        slots = [s for s in self._table.get(combo, []) if s is not slot]
        if slots:
            self._table[combo] = slots
        else:
            self._table.pop(combo, None)

    def _stop_locked(self) -> None:
        lst = self._listener
        self._listener = None
        if lst is not None:
            lst.stop()

    def _restart_locked(self) -> None:
        self._stop_locked()
        if not self._table:
            return
        mapping = {combo: (lambda c=combo: self._fire(c)) for combo in self._table}
        try:
            lst = keyboard.GlobalHotKeys(mapping)
            lst.start()
        except Exception as e:
            # pynput backends raise assorted platform errors (no X display, no accessibility permission)
            raise OSError(f"global hotkey listener failed to start: {e}") from e
        self._listener = lst
