# File: huehunter/sampler/manager.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from huehunter.errors import (
    CommandSendFailure,
    ProtocolParseError,
    SamplerRuntimeError,
    SpawnFailure,
    StartupTimeout,
    StreamUnavailable,
)
from huehunter.sampler.locate import resolve_sampler_command
from huehunter.sampler.protocol import (
    ControlCommand,
    ErrorFrame,
    LineFramer,
    SampleFrame,
    StartCommand,
    StopCommand,
    UpdateGridCommand,
    decode_frame,
    encode_command,
)

log = logging.getLogger(__name__)
stderr_log = logging.getLogger("huehunter.sampler.stderr")

DataCallback = Callable[[SampleFrame], None]
ErrorCallback = Callable[[str], None]


class SamplerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class SamplerConfig:
    grid_size: int
    sample_rate_hz: int = 15


class SamplerProcessManager:
    """
    Owns at most one sampler child process and speaks the JSON-lines protocol
    over its stdio.

    - All methods must be called on the event loop that runs the manager.
    - start() replaces a running process (stop old, then spawn new).
    - stop() never hangs: SIGTERM after stop_timeout_s, then gives up after
      kill_grace_s whether or not the process is gone.
    - The process handle never leaves this object; callers only see
      is_running() / state and their callbacks.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        *,
        stop_timeout_s: float = 0.5,
        kill_grace_s: float = 0.1,
        read_chunk_size: int = 64 * 1024,
    ) -> None:
        self._command: List[str] = list(command) if command else resolve_sampler_command()
        self._stop_timeout_s = float(stop_timeout_s)
        self._kill_grace_s = float(kill_grace_s)
        self._read_chunk_size = int(read_chunk_size)

        self._proc: Optional[asyncio.subprocess.Process] = None
        self._tasks: List[asyncio.Task] = []
        self._on_data: Optional[DataCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    # ---------- public ----------

    @property
    def command(self) -> List[str]:
        return list(self._command)

    @property
    def state(self) -> SamplerState:
        return SamplerState.RUNNING if self.is_running() else SamplerState.STOPPED

    def is_running(self) -> bool:
        proc = self._proc
        return proc is not None and proc.returncode is None

    def set_callbacks(self, on_data: Optional[DataCallback], on_error: Optional[ErrorCallback]) -> None:
        """Swap the callbacks of the running process (frames keep flowing)."""
        self._on_data = on_data
        self._on_error = on_error

    async def start(self, config: SamplerConfig, on_data: DataCallback, on_error: ErrorCallback) -> None:
        if self._proc is not None:
            await self.stop()

        try:
            proc = await self._spawn()
        except SpawnFailure as e:
            log.error("sampler spawn failed: %s", e)
            on_error(str(e))
            return

        self._proc = proc
        self._on_data = on_data
        self._on_error = on_error

        out_task = asyncio.create_task(self._pump_stdout(proc), name=f"sampler-stdout-{proc.pid}")
        err_task = asyncio.create_task(self._pump_stderr(proc), name=f"sampler-stderr-{proc.pid}")
        exit_task = asyncio.create_task(self._watch_exit(proc, out_task, err_task), name=f"sampler-exit-{proc.pid}")
        self._tasks = [out_task, err_task, exit_task]

        log.info("sampler started pid=%s grid=%d rate=%dHz", proc.pid, config.grid_size, config.sample_rate_hz)
        self._send(StartCommand(grid_size=int(config.grid_size), sample_rate=int(config.sample_rate_hz)))

    async def ensure_started(self, config: SamplerConfig, timeout_s: float = 30.0) -> None:
        """
        Start the sampler and wait for its first frame.

        Any OS permission prompt triggered by screen capture shows up (and is
        answered) here, before a full-screen overlay could cover it.
        Raises SamplerRuntimeError on the first error frame or spawn failure,
        StartupTimeout when nothing arrives in time.
        """
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[None] = loop.create_future()
        deadline = loop.time() + float(timeout_s)

        def on_first_data(_frame: SampleFrame) -> None:
            if not ready.done():
                ready.set_result(None)

        def on_first_error(message: str) -> None:
            if not ready.done():
                ready.set_exception(SamplerRuntimeError(message))

        await self.start(config, on_first_data, on_first_error)

        remaining = max(0.0, deadline - loop.time())
        try:
            await asyncio.wait_for(ready, timeout=remaining)
        except asyncio.TimeoutError as e:
            raise StartupTimeout(f"no frame from sampler within {float(timeout_s):.1f}s") from e

    def update_grid_size(self, grid_size: int) -> None:
        if not self.is_running():
            log.info("update_grid_size(%d) ignored: sampler not running", grid_size)
            return
        self._send(UpdateGridCommand(grid_size=int(grid_size)))

    async def stop(self) -> None:
        proc = self._proc
        if proc is None:
            return

        # 先清空句柄：stop 过程中 is_running() 立即返回 False
        self._proc = None
        self._on_data = None
        self._on_error = None
        tasks, self._tasks = self._tasks, []

        self._write(proc, StopCommand())
        if proc.stdin is not None:
            try:
                proc.stdin.close()
            except (OSError, RuntimeError) as e:
                log.debug("closing sampler stdin failed: %s", e)

        if proc.returncode is None:
            try:
                await asyncio.wait_for(proc.wait(), timeout=self._stop_timeout_s)
            except asyncio.TimeoutError:
                log.warning("sampler pid=%s still running after %.0f ms, terminating",
                            proc.pid, self._stop_timeout_s * 1000.0)
                self._signal(proc, kill=False)
                try:
                    await asyncio.wait_for(proc.wait(), timeout=self._kill_grace_s)
                except asyncio.TimeoutError:
                    log.error("sampler pid=%s did not exit after terminate; no longer waiting", proc.pid)

        for t in tasks:
            if not t.done():
                t.cancel()
        log.info("sampler stopped pid=%s code=%s", proc.pid, proc.returncode)

    async def close(self) -> None:
        await self.stop()

    # ---------- spawning ----------

    async def _create_process(self) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _spawn(self) -> asyncio.subprocess.Process:
        try:
            proc = await self._create_process()
        except (OSError, ValueError) as e:
            raise SpawnFailure(f"cannot spawn sampler {self._command[0]!r}", cause=e) from e

        if proc.stdin is None or proc.stdout is None or proc.stderr is None:
            self._signal(proc, kill=True)
            raise StreamUnavailable("failed to create sampler stdio streams")
        return proc

    @staticmethod
    def _signal(proc: asyncio.subprocess.Process, *, kill: bool) -> None:
        try:
            if kill:
                proc.kill()
            else:
                proc.terminate()
        except ProcessLookupError:
            pass
        except OSError as e:
            log.warning("signalling sampler pid=%s failed: %s", proc.pid, e)

    # ---------- outbound ----------

    def _send(self, cmd: ControlCommand) -> bool:
        proc = self._proc
        if proc is None:
            log.error("cannot send %s: sampler not running", type(cmd).__name__)
            return False
        return self._write(proc, cmd)

    def _write(self, proc: asyncio.subprocess.Process, cmd: ControlCommand) -> bool:
        stdin = proc.stdin
        if stdin is None or stdin.is_closing():
            log.error("cannot send %s: stdin unavailable (pid=%s returncode=%s)",
                      type(cmd).__name__, proc.pid, proc.returncode)
            return False
        try:
            stdin.write(encode_command(cmd))
        except (OSError, RuntimeError) as e:
            log.error("%s", CommandSendFailure(f"failed to send {type(cmd).__name__}", cause=e))
            return False
        log.debug("-> sampler: %s", cmd)
        return True

    # ---------- inbound ----------

    async def _pump_stdout(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdout is not None
        framer = LineFramer()
        while True:
            chunk = await proc.stdout.read(self._read_chunk_size)
            if not chunk:
                break
            for line in framer.feed(chunk):
                self._dispatch_line(proc, line)
        if framer.pending.strip():
            log.warning("sampler output ended mid-line, dropped %d bytes", len(framer.pending))

    async def _pump_stderr(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stderr is not None
        while True:
            chunk = await proc.stderr.read(self._read_chunk_size)
            if not chunk:
                break
            for line in chunk.decode("utf-8", errors="replace").splitlines():
                if line.strip():
                    stderr_log.warning("[pid=%s] %s", proc.pid, line.rstrip())

    def _dispatch_line(self, proc: asyncio.subprocess.Process, line: str) -> None:
        if proc is not self._proc:
            return
        try:
            frame = decode_frame(line)
        except ProtocolParseError as e:
            log.warning("dropping malformed sampler line %r: %s", line[:200], e)
            return

        if isinstance(frame, ErrorFrame):
            log.error("sampler error: %s", frame.error)
            cb_err = self._on_error
            if cb_err is not None:
                self._invoke(cb_err, frame.error)
            return

        cb_data = self._on_data
        if cb_data is not None:
            self._invoke(cb_data, frame)

    @staticmethod
    def _invoke(cb: Callable[[object], None], arg: object) -> None:
        try:
            cb(arg)
        except Exception:
            log.exception("sampler callback raised")

    async def _watch_exit(self, proc: asyncio.subprocess.Process, *pumps: asyncio.Task) -> None:
        code = await proc.wait()
        # frames written right before exit are still in the pipe
        await asyncio.wait(pumps, timeout=1.0)
        if proc is self._proc:
            log.warning("sampler pid=%s exited unexpectedly (code=%s)", proc.pid, code)
            self._proc = None
            self._tasks = []
        else:
            log.debug("sampler pid=%s exited (code=%s)", proc.pid, code)
