# tests/fake_sampler.py
"""
Scripted stand-in for the sampler process.

    python fake_sampler.py MODE [RECORD_PATH]

Every received command line is appended to RECORD_PATH when given.

normal    frames every 20 ms after start, exits on stop / EOF
split     one frame and an error frame split mid-object across two writes
silent    never writes anything
stubborn  ignores stop, EOF and SIGTERM, exits by itself after 1.5 s
crash     one frame after start, then exits with code 3
garbage   malformed lines first, then behaves like normal
error     one error frame after start, then stays silent
"""
from __future__ import annotations

import json
import signal
import sys
import threading
import time

CENTER = (10, 20, 30)
CURSOR = (100, 200)

_out_lock = threading.Lock()


def _write(text: str) -> None:
    with _out_lock:
        sys.stdout.write(text)
        sys.stdout.flush()


def _frame(grid_size: int) -> str:
    r, g, b = CENTER
    px = {"r": r, "g": g, "b": b, "hex": f"#{r:02X}{g:02X}{b:02X}"}
    return json.dumps(
        {
            "cursor": {"x": CURSOR[0], "y": CURSOR[1]},
            "center": px,
            "grid": [[px] * grid_size for _ in range(grid_size)],
            "timestamp": int(time.time() * 1000),
        }
    )


class _Streamer:
    def __init__(self) -> None:
        self.grid_size = 9
        self._stop = threading.Event()
        self._th = None

    def start(self) -> None:
        if self._th is not None:
            return
        self._th = threading.Thread(target=self._run, daemon=True)
        self._th.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            _write(_frame(self.grid_size) + "\n")
            time.sleep(0.02)


def main() -> int:
    mode = sys.argv[1] if len(sys.argv) > 1 else "normal"
    record = open(sys.argv[2], "a", encoding="utf-8") if len(sys.argv) > 2 else None
    print(f"fake sampler mode={mode}", file=sys.stderr, flush=True)

    if mode == "stubborn":
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, signal.SIG_IGN)
        time.sleep(1.5)
        return 0

    streamer = _Streamer()
    for raw in sys.stdin:
        line = raw.strip()
        if not line:
            continue
        if record is not None:
            record.write(line + "\n")
            record.flush()
        cmd = json.loads(line)
        name = cmd.get("command")

        if name == "stop":
            break
        if name == "update_grid":
            streamer.grid_size = int(cmd["grid_size"])
            continue
        if name != "start":
            continue

        streamer.grid_size = int(cmd["grid_size"])
        if mode == "normal":
            streamer.start()
        elif mode == "garbage":
            _write("not json at all\n[1, 2, 3]\n{\"cursor\": \"nowhere\"}\n")
            streamer.start()
        elif mode == "split":
            first = _frame(streamer.grid_size) + '\n{"err'
            _write(first)
            time.sleep(0.2)
            _write('or":"x"}\n')
        elif mode == "crash":
            _write(_frame(streamer.grid_size) + "\n")
            return 3
        elif mode == "error":
            _write(json.dumps({"error": "capture permission denied"}) + "\n")

    streamer.stop()
    if record is not None:
        record.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
