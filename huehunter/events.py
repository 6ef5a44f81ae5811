from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Optional

from huehunter.event_types import SurfaceEvent, as_surface_event

log = logging.getLogger(__name__)

Handler = Callable[..., None]


class Registration:
    """
    Handle returned by subscribe()/register(). release() is idempotent.
    """

    __slots__ = ("_release", "_lock", "name")

    def __init__(self, release: Callable[[], None], *, name: str = "") -> None:
        self._release: Optional[Callable[[], None]] = release
        self._lock = threading.Lock()
        self.name = name

    @property
    def active(self) -> bool:
        return self._release is not None

    def release(self) -> None:
        with self._lock:
            fn = self._release
            self._release = None
        if fn is not None:
            fn()

    def __repr__(self) -> str:
        return f"Registration(name={self.name!r}, active={self.active})"


class EventEmitter:
    """
    Synchronous per-object event registry.

    - subscribe() returns a Registration; releasing it removes exactly that
      subscription, even if the same handler was subscribed twice.
    - emit() calls handlers on the emitting thread; a failing handler is
      logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[SurfaceEvent, List[List[Handler]]] = defaultdict(list)
        self._lock = threading.RLock()

    def subscribe(self, event: SurfaceEvent | str, handler: Handler) -> Registration:
        ev = as_surface_event(event)
        if handler is None:
            raise ValueError("handler cannot be None")
        # boxed so that identity of the slot (not of the handler) is what release removes
        slot = [handler]
        with self._lock:
            self._handlers[ev].append(slot)

        def _release() -> None:
            with self._lock:
                slots = self._handlers.get(ev)
                if slots is None:
                    return
                self._handlers[ev] = [s for s in slots if s is not slot]

        return Registration(_release, name=ev.value)

    def emit(self, event: SurfaceEvent | str, *args: Any) -> int:
        ev = as_surface_event(event)
        with self._lock:
            slots = list(self._handlers.get(ev, []))
        for slot in slots:
            try:
                slot[0](*args)
            except Exception:
                log.exception("handler for %s failed", ev.value)
        return len(slots)

    def listener_count(self, event: SurfaceEvent | str | None = None) -> int:
        with self._lock:
            if event is None:
                return sum(len(v) for v in self._handlers.values())
            return len(self._handlers.get(as_surface_event(event), []))

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
