# tests/test_process_manager.py
from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, List, Tuple

import pytest

from huehunter.errors import SamplerRuntimeError, StartupTimeout
from huehunter.sampler.manager import SamplerConfig, SamplerProcessManager, SamplerState
from huehunter.sampler.protocol import SampleFrame

CONFIG = SamplerConfig(grid_size=9, sample_rate_hz=15)


class Collector:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Any]] = []

    def on_data(self, frame: SampleFrame) -> None:
        self.events.append(("data", frame))

    def on_error(self, message: str) -> None:
        self.events.append(("error", message))

    def kinds(self) -> List[str]:
        return [k for k, _ in self.events]


async def wait_until(pred: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while not pred():
        if loop.time() > end:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def read_record(path: Path) -> List[dict]:
    if not path.exists():
        return []
    return [json.loads(x) for x in path.read_text(encoding="utf-8").splitlines() if x.strip()]


def test_stop_without_process_is_noop() -> None:
    async def scenario() -> float:
        m = SamplerProcessManager(["does-not-matter"])
        t0 = time.monotonic()
        await m.stop()
        await m.stop()
        return time.monotonic() - t0

    assert asyncio.run(scenario()) < 0.05


def test_state_reporting(fake_sampler_cmd) -> None:
    async def scenario() -> None:
        m = SamplerProcessManager(fake_sampler_cmd("normal"))
        assert m.state is SamplerState.STOPPED
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        assert m.is_running()
        assert m.state is SamplerState.RUNNING
        await m.stop()
        # stop 之后立即报告未运行
        assert not m.is_running()
        assert m.state is SamplerState.STOPPED

    asyncio.run(scenario())


def test_split_line_is_reassembled_in_order(fake_sampler_cmd) -> None:
    async def scenario() -> Collector:
        m = SamplerProcessManager(fake_sampler_cmd("split"))
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        try:
            await wait_until(lambda: len(c.events) >= 2)
            await asyncio.sleep(0.1)
        finally:
            await m.stop()
        return c

    c = asyncio.run(scenario())
    assert c.kinds() == ["data", "error"]
    assert c.events[1][1] == "x"
    frame = c.events[0][1]
    assert frame.center.hex == "#0A141E"
    assert len(frame.grid) == 9


def test_malformed_lines_are_dropped(fake_sampler_cmd) -> None:
    async def scenario() -> Tuple[Collector, bool]:
        m = SamplerProcessManager(fake_sampler_cmd("garbage"))
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        try:
            await wait_until(lambda: len(c.events) >= 3)
            return c, m.is_running()
        finally:
            await m.stop()

    c, running = asyncio.run(scenario())
    assert running
    assert set(c.kinds()) == {"data"}


def test_commands_are_sent_in_order(fake_sampler_cmd, tmp_path: Path) -> None:
    record = tmp_path / "commands.jsonl"

    async def scenario() -> None:
        m = SamplerProcessManager(fake_sampler_cmd("normal", record))
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        await wait_until(lambda: bool(c.events))
        m.update_grid_size(11)
        await wait_until(lambda: any(len(f.grid) == 11 for k, f in c.events if k == "data"))
        await m.stop()

    asyncio.run(scenario())
    assert read_record(record) == [
        {"command": "start", "grid_size": 9, "sample_rate": 15},
        {"command": "update_grid", "grid_size": 11},
        {"command": "stop"},
    ]


def test_start_replaces_running_process(fake_sampler_cmd, tmp_path: Path) -> None:
    record = tmp_path / "commands.jsonl"

    async def scenario() -> None:
        m = SamplerProcessManager(fake_sampler_cmd("normal", record))
        c1, c2 = Collector(), Collector()
        await m.start(CONFIG, c1.on_data, c1.on_error)
        first = m._proc
        await m.start(SamplerConfig(grid_size=13, sample_rate_hz=30), c2.on_data, c2.on_error)
        second = m._proc

        assert first is not None and second is not None and first is not second
        # 旧进程已经退出，只剩一个活进程
        assert first.returncode is not None
        assert m.is_running()

        await wait_until(lambda: bool(c2.events))
        n1 = len(c1.events)
        await asyncio.sleep(0.1)
        # 旧回调不再收到数据
        assert len(c1.events) == n1
        await m.stop()

    asyncio.run(scenario())
    cmds = [x["command"] for x in read_record(record)]
    assert cmds == ["start", "stop", "start", "stop"]


def test_spawn_failure_is_reported_through_on_error(tmp_path: Path) -> None:
    async def scenario() -> Tuple[Collector, bool]:
        m = SamplerProcessManager([str(tmp_path / "no-such-sampler")])
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        return c, m.is_running()

    c, running = asyncio.run(scenario())
    assert not running
    assert c.kinds() == ["error"]
    assert "cannot spawn sampler" in c.events[0][1]


class _NoStdoutManager(SamplerProcessManager):
    def __init__(self) -> None:
        super().__init__([sys.executable, "-c", "import time; time.sleep(10)"])
        self.spawned = None

    async def _create_process(self) -> asyncio.subprocess.Process:
        self.spawned = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return self.spawned


def test_missing_stream_kills_partial_process() -> None:
    async def scenario() -> Tuple[Collector, bool, Any]:
        m = _NoStdoutManager()
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        code = await asyncio.wait_for(m.spawned.wait(), timeout=5.0)
        return c, m.is_running(), code

    c, running, code = asyncio.run(scenario())
    assert not running
    assert code is not None
    assert c.kinds() == ["error"]
    assert "stdio" in c.events[0][1]


def test_update_grid_size_when_not_running_is_noop() -> None:
    m = SamplerProcessManager(["does-not-matter"])
    m.update_grid_size(11)
    assert not m.is_running()


def test_ensure_started_resolves_on_first_frame(fake_sampler_cmd) -> None:
    async def scenario() -> bool:
        m = SamplerProcessManager(fake_sampler_cmd("normal"))
        await m.ensure_started(CONFIG, timeout_s=10.0)
        try:
            return m.is_running()
        finally:
            await m.stop()

    assert asyncio.run(scenario())


def test_ensure_started_rejects_on_error_frame(fake_sampler_cmd) -> None:
    async def scenario() -> None:
        m = SamplerProcessManager(fake_sampler_cmd("error"))
        try:
            with pytest.raises(SamplerRuntimeError, match="permission denied"):
                await m.ensure_started(CONFIG, timeout_s=10.0)
        finally:
            await m.stop()

    asyncio.run(scenario())


def test_ensure_started_rejects_on_spawn_failure(tmp_path: Path) -> None:
    async def scenario() -> None:
        m = SamplerProcessManager([str(tmp_path / "no-such-sampler")])
        with pytest.raises(SamplerRuntimeError):
            await m.ensure_started(CONFIG, timeout_s=10.0)

    asyncio.run(scenario())


def test_ensure_started_times_out_at_the_deadline(fake_sampler_cmd) -> None:
    async def scenario() -> float:
        m = SamplerProcessManager(fake_sampler_cmd("silent"))
        t0 = time.monotonic()
        try:
            with pytest.raises(StartupTimeout):
                await m.ensure_started(CONFIG, timeout_s=0.3)
            return time.monotonic() - t0
        finally:
            await m.stop()

    elapsed = asyncio.run(scenario())
    assert 0.29 <= elapsed < 1.5


@pytest.mark.skipif(sys.platform.startswith("win"), reason="SIGTERM cannot be ignored on Windows")
def test_stop_gives_up_on_unresponsive_process(fake_sampler_cmd) -> None:
    async def scenario() -> Tuple[float, bool]:
        m = SamplerProcessManager(fake_sampler_cmd("stubborn"), stop_timeout_s=0.5, kill_grace_s=0.1)
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        proc = m._proc
        # 等子进程装好 SIGTERM 忽略
        await asyncio.sleep(0.3)
        t0 = time.monotonic()
        await m.stop()
        elapsed = time.monotonic() - t0
        running = m.is_running()
        # 让它自己退出，避免泄漏
        await asyncio.wait_for(proc.wait(), timeout=5.0)
        return elapsed, running

    elapsed, running = asyncio.run(scenario())
    assert not running
    assert 0.55 <= elapsed < 1.2


def test_unexpected_exit_clears_the_handle(fake_sampler_cmd) -> None:
    async def scenario() -> Collector:
        m = SamplerProcessManager(fake_sampler_cmd("crash"))
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        await wait_until(lambda: m._proc is None)
        assert not m.is_running()
        # 无进程时 stop / update_grid_size 都是安全的
        m.update_grid_size(11)
        await m.stop()
        return c

    c = asyncio.run(scenario())
    assert c.kinds() == ["data"]


def test_sampler_stderr_is_logged(fake_sampler_cmd, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="huehunter.sampler.stderr")

    async def scenario() -> None:
        m = SamplerProcessManager(fake_sampler_cmd("silent"))
        c = Collector()
        await m.start(CONFIG, c.on_data, c.on_error)
        try:
            await wait_until(lambda: any("fake sampler mode=silent" in r.getMessage() for r in caplog.records))
        finally:
            await m.stop()
        # stderr 从不进 on_data / on_error
        assert c.events == []

    asyncio.run(scenario())


def test_callback_exception_does_not_stop_the_pump(fake_sampler_cmd) -> None:
    async def scenario() -> int:
        m = SamplerProcessManager(fake_sampler_cmd("normal"))
        seen: List[SampleFrame] = []

        def on_data(frame: SampleFrame) -> None:
            seen.append(frame)
            raise RuntimeError("handler bug")

        await m.start(CONFIG, on_data, lambda _msg: None)
        try:
            await wait_until(lambda: len(seen) >= 3)
            return len(seen)
        finally:
            await m.stop()

    assert asyncio.run(scenario()) >= 3
