# File: huehunter/pick/session.py
from __future__ import annotations

import asyncio
import contextvars
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from huehunter.errors import SamplerError
from huehunter.event_types import SurfaceEvent
from huehunter.events import Registration
from huehunter.input.hotkeys import HotkeyRegistrar
from huehunter.logging_context import log_context, new_corr_id
from huehunter.models.settings import HotkeySettings, PickerSettings
from huehunter.pick.grid import GridConfig
from huehunter.pick.surface import MagnifierSurface, PixelGridUpdate, PositionUpdate, SurfaceFactory
from huehunter.pick.zoom import adjust_cell_size, next_diameter
from huehunter.sampler.manager import SamplerConfig, SamplerProcessManager
from huehunter.sampler.protocol import SampleFrame

log = logging.getLogger(__name__)

ColorNameFn = Callable[[int, int, int], str]

DEFAULT_COLOR = "#FFFFFF"


def unknown_color_name(_r: int, _g: int, _b: int) -> str:
    return "Unknown"


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    RESOLVING = "resolving"


@dataclass(frozen=True)
class PickerOptions:
    initial_diameter: float = 180
    initial_cell_size: float = 20
    sample_rate_hz: int = 15
    startup_timeout_s: float = 30.0
    cancel_hotkey: str = "esc"
    grid_buffer: int = 0

    @staticmethod
    def from_settings(picker: PickerSettings, hotkeys: HotkeySettings) -> "PickerOptions":
        return PickerOptions(
            initial_diameter=picker.initial_diameter,
            initial_cell_size=picker.initial_cell_size,
            sample_rate_hz=picker.sample_rate_hz,
            startup_timeout_s=picker.startup_timeout_ms / 1000.0,
            cancel_hotkey=hotkeys.cancel_pick or "esc",
            grid_buffer=picker.grid_buffer,
        )


class ColorPicker:
    """
    One reusable picking session on top of a SamplerProcessManager.

    State machine:
        IDLE --pick_color()--> STARTING --sampler ready, surface shown--> ACTIVE
        ACTIVE --select / cancel / Escape / surface closed--> RESOLVING
        RESOLVING (or any failure) --cleanup--> IDLE

    - pick_color() while not IDLE returns None immediately.
    - Every handler armed for a pick is re-posted onto the event loop, and the
      ACTIVE -> RESOLVING transition in _begin_resolving() is the only place
      an outcome is decided, so racing terminal events resolve exactly once.
    - Zoom, sampler frames and sampler errors never resolve the pick.
    """

    def __init__(
        self,
        *,
        surface_factory: SurfaceFactory,
        hotkeys: HotkeyRegistrar,
        manager: Optional[SamplerProcessManager] = None,
        color_name_fn: Optional[ColorNameFn] = None,
        options: Optional[PickerOptions] = None,
    ) -> None:
        self._options = options or PickerOptions()
        self._surface_factory = surface_factory
        self._hotkeys = hotkeys
        self._manager = manager if manager is not None else SamplerProcessManager()
        self._color_name_fn: ColorNameFn = color_name_fn or unknown_color_name

        self._grid = GridConfig.from_dimensions(
            self._options.initial_diameter,
            self._options.initial_cell_size,
            buffer=self._options.grid_buffer,
        )

        self._state = SessionState.IDLE
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ctx: Optional[contextvars.Context] = None
        self._surface: Optional[MagnifierSurface] = None
        self._outcome: Optional[asyncio.Future[Optional[str]]] = None
        self._registrations: List[Registration] = []
        self._last_color = DEFAULT_COLOR

    # ---------- public ----------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def grid(self) -> GridConfig:
        return self._grid

    @property
    def manager(self) -> SamplerProcessManager:
        return self._manager

    async def pick_color(self) -> Optional[str]:
        """
        Show the magnifier and wait for the user.

        Returns the picked colour as "#RRGGBB", or None when cancelled,
        closed, or when anything failed along the way.
        """
        if self._state is not SessionState.IDLE:
            log.warning("pick_color() rejected: a pick is already in progress (state=%s)", self._state.value)
            return None

        self._state = SessionState.STARTING
        with log_context(corr_id=new_corr_id(), action="pick"):
            try:
                config = SamplerConfig(grid_size=self._grid.sample_grid_size, sample_rate_hz=self._options.sample_rate_hz)
                try:
                    await self._manager.ensure_started(config, timeout_s=self._options.startup_timeout_s)
                except SamplerError as e:
                    log.error("sampler not ready, pick aborted: %s", e)
                    return None
                return await self._run_active(config)
            except Exception:
                log.exception("pick failed")
                return None
            finally:
                await self._cleanup()

    def cancel(self) -> None:
        """
        Cancel the current pick from any thread. No-op unless ACTIVE.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._resolve, None, "cancel()", context=self._ctx)

    async def close(self) -> None:
        await self._manager.stop()

    # ---------- ACTIVE ----------

    async def _run_active(self, config: SamplerConfig) -> Optional[str]:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._ctx = contextvars.copy_context()
        self._last_color = DEFAULT_COLOR

        surface = self._surface_factory()
        self._surface = surface
        await surface.show()

        self._outcome = loop.create_future()
        self._state = SessionState.ACTIVE
        self._arm(surface)

        if self._manager.is_running():
            # replace the temporary callbacks installed by ensure_started()
            self._manager.set_callbacks(self._on_frame, self._on_sampler_error)
        else:
            log.warning("sampler stopped between warm-up and overlay; restarting")
            await self._manager.start(config, self._on_frame, self._on_sampler_error)

        if surface.is_closed():
            self._resolve(None, "surface closed before activation")

        log.info("pick active (diameter=%s cell=%s grid=%d)",
                 self._grid.diameter, self._grid.cell_size, self._grid.grid_size)
        return await self._outcome

    def _arm(self, surface: MagnifierSurface) -> None:
        post = self._on_loop
        ev = surface.events
        regs = self._registrations

        regs.append(ev.subscribe(SurfaceEvent.READY, post(self._on_surface_ready)))
        regs.append(ev.subscribe(SurfaceEvent.COLOR_SELECTED, post(lambda: self._resolve(self._last_color, "selected"))))
        regs.append(ev.subscribe(SurfaceEvent.CANCELLED, post(lambda: self._resolve(None, "cancelled"))))
        regs.append(ev.subscribe(SurfaceEvent.CLOSED, post(lambda: self._resolve(None, "surface closed"))))
        regs.append(ev.subscribe(SurfaceEvent.ZOOM_DIAMETER, post(self._on_zoom_diameter)))
        regs.append(ev.subscribe(SurfaceEvent.ZOOM_DENSITY, post(self._on_zoom_density)))

        hk = self._options.cancel_hotkey
        try:
            regs.append(self._hotkeys.register(hk, post(lambda: self._resolve(None, f"hotkey {hk}"))))
        except (ValueError, OSError) as e:
            log.error("cancel hotkey %r not registered: %s", hk, e)

    def _on_loop(self, fn: Callable[..., None]) -> Callable[..., None]:
        """
        Wrap `fn` so that calling it from any thread schedules it on the
        session's loop, inside this pick's logging context.
        """
        loop = self._loop
        ctx = self._ctx
        assert loop is not None

        def _post(*args: Any) -> None:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(lambda: fn(*args), context=ctx)

        return _post

    # ---------- resolution ----------

    def _begin_resolving(self) -> bool:
        if self._state is not SessionState.ACTIVE:
            return False
        self._state = SessionState.RESOLVING
        return True

    def _resolve(self, result: Optional[str], reason: str) -> None:
        if not self._begin_resolving():
            log.debug("ignoring %s: state=%s", reason, self._state.value)
            return
        log.info("pick resolved by %s -> %s", reason, result)
        self._release_registrations()
        outcome = self._outcome
        if outcome is not None and not outcome.done():
            outcome.set_result(result)

    # ---------- non-terminal events ----------

    def _on_surface_ready(self) -> None:
        log.debug("magnifier surface ready")

    def _on_zoom_diameter(self, delta: float) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        new_diameter = next_diameter(self._grid.diameter, delta)
        if new_diameter != self._grid.diameter:
            self._apply_grid(self._grid.with_diameter(new_diameter))

    def _on_zoom_density(self, delta: float) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        new_cell = adjust_cell_size(self._grid.cell_size, delta)
        if new_cell != self._grid.cell_size:
            self._apply_grid(self._grid.with_cell_size(new_cell))

    def _apply_grid(self, new: GridConfig) -> None:
        old = self._grid
        self._grid = new
        log.debug("grid %s -> %s", old, new)
        if new.sample_grid_size != old.sample_grid_size:
            self._manager.update_grid_size(new.sample_grid_size)

    def _on_frame(self, frame: SampleFrame) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        surface = self._surface
        if surface is None or surface.is_closed():
            return

        c = frame.center
        self._last_color = c.hex
        try:
            name = self._color_name_fn(c.r, c.g, c.b)
        except Exception:
            log.exception("color name lookup failed for %s", c.hex)
            name = unknown_color_name(c.r, c.g, c.b)

        dx, dy = surface.origin()
        surface.update_position(PositionUpdate(x=frame.cursor.x, y=frame.cursor.y, display_x=dx, display_y=dy))
        surface.update_pixel_grid(
            PixelGridUpdate(
                center_color=c,
                color_name=name,
                pixels=frame.grid,
                diameter=self._grid.diameter,
                grid_size=self._grid.grid_size,
                cell_size=self._grid.cell_size,
            )
        )

    def _on_sampler_error(self, message: str) -> None:
        # capture hiccups are expected; keep picking
        log.warning("sampler error during pick (ignored): %s", message)

    # ---------- cleanup ----------

    def _release_registrations(self) -> None:
        regs, self._registrations = self._registrations, []
        for reg in regs:
            try:
                reg.release()
            except Exception:
                log.exception("releasing %r failed", reg)

    async def _cleanup(self) -> None:
        """
        Runs once per pick on every exit path. Safe when the surface or the
        registrations were never created.
        """
        self._release_registrations()
        surface, self._surface = self._surface, None
        try:
            await self._manager.stop()
        except Exception:
            log.exception("stopping sampler failed")
        finally:
            try:
                if surface is not None and not surface.is_closed():
                    surface.close()
            except Exception:
                log.exception("closing magnifier surface failed")
            outcome, self._outcome = self._outcome, None
            if outcome is not None and not outcome.done():
                outcome.cancel()
            self._loop = None
            self._ctx = None
            self._state = SessionState.IDLE
            log.debug("pick cleaned up")
