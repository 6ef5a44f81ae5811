"""
The sampler side of the protocol: read commands from stdin, stream frames
to stdout at the requested rate.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import BinaryIO, Callable, Iterable, List, Optional, Protocol, Tuple

from huehunter.errors import ProtocolParseError
from huehunter.sampler.protocol import (
    ControlCommand,
    CursorPos,
    ErrorFrame,
    Frame,
    PixelColor,
    SampleFrame,
    StartCommand,
    StopCommand,
    UpdateGridCommand,
    decode_command,
    encode_frame,
)

log = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

_EOF = object()


class GridCapture(Protocol):
    def cursor(self) -> Tuple[int, int]: ...

    def grab(self, cx: int, cy: int, size: int) -> List[List[RGB]]: ...


class SamplerServer:
    def __init__(
        self,
        capture: GridCapture,
        out: BinaryIO,
        *,
        error_throttle_ms: int = 800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._capture = capture
        self._out = out
        self._error_throttle_s = error_throttle_ms / 1000.0
        self._clock = clock

        self.running = False
        self.grid_size = 9
        self.sample_rate = 15
        self._last_err_t: Optional[float] = None

    @property
    def period_s(self) -> float:
        return 1.0 / max(1, int(self.sample_rate))

    def apply(self, cmd: ControlCommand) -> bool:
        """Returns False when the server should exit."""
        if isinstance(cmd, StartCommand):
            self.grid_size = _odd_at_least_1(cmd.grid_size)
            self.sample_rate = max(1, int(cmd.sample_rate))
            self.running = True
            log.info("start grid=%d rate=%d", self.grid_size, self.sample_rate)
            return True
        if isinstance(cmd, UpdateGridCommand):
            self.grid_size = _odd_at_least_1(cmd.grid_size)
            log.info("grid -> %d", self.grid_size)
            return True
        if isinstance(cmd, StopCommand):
            self.running = False
            log.info("stop")
            return False
        return True

    def sample(self) -> Frame:
        try:
            x, y = self._capture.cursor()
            pixels = self._capture.grab(x, y, self.grid_size)
        except Exception as e:
            return ErrorFrame(error=f"capture failed: {e}")

        grid = tuple(tuple(PixelColor.from_rgb(*p) for p in row) for row in pixels)
        mid = self.grid_size // 2
        return SampleFrame(
            cursor=CursorPos(x=x, y=y),
            center=grid[mid][mid],
            grid=grid,
            timestamp_ms=int(time.time() * 1000),
        )

    def tick(self) -> None:
        frame = self.sample()
        if isinstance(frame, ErrorFrame):
            now = self._clock()
            if self._last_err_t is not None and now - self._last_err_t < self._error_throttle_s:
                return
            self._last_err_t = now
        self._write(frame)

    def serve(self, commands: "queue.Queue[object]") -> None:
        next_t = self._clock()
        while True:
            timeout = max(0.0, next_t - self._clock()) if self.running else None
            try:
                item = commands.get(timeout=timeout)
            except queue.Empty:
                item = None

            if item is _EOF:
                log.info("stdin closed, exiting")
                return
            if item is not None:
                if not self.apply(item):  # type: ignore[arg-type]
                    return
                next_t = self._clock()
                continue

            if self.running:
                self.tick()
                next_t += self.period_s
                if next_t < self._clock():
                    next_t = self._clock()

    def _write(self, frame: Frame) -> None:
        self._out.write(encode_frame(frame))
        self._out.flush()


def _odd_at_least_1(n: int) -> int:
    n = max(1, int(n))
    return n if n % 2 == 1 else n + 1


def read_commands(lines: Iterable[bytes], q: "queue.Queue[object]") -> None:
    for raw in lines:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        try:
            q.put(decode_command(line))
        except ProtocolParseError as e:
            log.warning("bad command %r: %s", line[:200], e)
    q.put(_EOF)


def start_reader(stream: BinaryIO, q: "queue.Queue[object]") -> threading.Thread:
    th = threading.Thread(target=read_commands, args=(stream, q), name="sampler-stdin", daemon=True)
    th.start()
    return th
