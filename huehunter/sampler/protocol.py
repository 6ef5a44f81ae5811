"""
Newline-delimited JSON protocol spoken with the sampler process.

    -> {"command":"start","grid_size":9,"sample_rate":15}
    -> {"command":"update_grid","grid_size":11}
    -> {"command":"stop"}
    <- {"cursor":{...},"center":{...},"grid":[[...]],"timestamp":...}
    <- {"error":"..."}

Inbound lines are decoded into SampleFrame | ErrorFrame right here so the
rest of the code never branches on raw dict keys.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from huehunter.errors import ProtocolParseError


# ---------- commands (host -> sampler) ----------

@dataclass(frozen=True)
class StartCommand:
    grid_size: int
    sample_rate: int

    def to_dict(self) -> Dict[str, Any]:
        return {"command": "start", "grid_size": int(self.grid_size), "sample_rate": int(self.sample_rate)}


@dataclass(frozen=True)
class UpdateGridCommand:
    grid_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"command": "update_grid", "grid_size": int(self.grid_size)}


@dataclass(frozen=True)
class StopCommand:
    def to_dict(self) -> Dict[str, Any]:
        return {"command": "stop"}


ControlCommand = Union[StartCommand, UpdateGridCommand, StopCommand]


def encode_command(cmd: ControlCommand) -> bytes:
    return (json.dumps(cmd.to_dict(), separators=(",", ":")) + "\n").encode("utf-8")


def _require_int(d: Dict[str, Any], key: str) -> int:
    v = d.get(key)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ProtocolParseError(f"field {key!r} must be a number, got {v!r}")
    return int(v)


def decode_command(line: str) -> ControlCommand:
    """Sampler side of the protocol."""
    obj = _load_object(line)
    name = obj.get("command")
    if name == "start":
        return StartCommand(grid_size=_require_int(obj, "grid_size"), sample_rate=_require_int(obj, "sample_rate"))
    if name == "update_grid":
        return UpdateGridCommand(grid_size=_require_int(obj, "grid_size"))
    if name == "stop":
        return StopCommand()
    raise ProtocolParseError(f"unknown command: {name!r}")


# ---------- frames (sampler -> host) ----------

@dataclass(frozen=True)
class CursorPos:
    x: int
    y: int


@dataclass(frozen=True)
class PixelColor:
    r: int
    g: int
    b: int
    hex: str

    @staticmethod
    def from_rgb(r: int, g: int, b: int) -> "PixelColor":
        return PixelColor(int(r), int(g), int(b), f"#{int(r):02X}{int(g):02X}{int(b):02X}")

    @staticmethod
    def from_dict(d: Any) -> "PixelColor":
        if not isinstance(d, dict):
            raise ProtocolParseError(f"color must be an object, got {type(d).__name__}")
        r, g, b = _require_int(d, "r"), _require_int(d, "g"), _require_int(d, "b")
        hx = d.get("hex")
        if not isinstance(hx, str):
            hx = f"#{r:02X}{g:02X}{b:02X}"
        return PixelColor(r, g, b, hx)

    def to_dict(self) -> Dict[str, Any]:
        return {"r": self.r, "g": self.g, "b": self.b, "hex": self.hex}


PixelGrid = Tuple[Tuple[PixelColor, ...], ...]


@dataclass(frozen=True)
class SampleFrame:
    cursor: CursorPos
    center: PixelColor
    grid: PixelGrid
    timestamp_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cursor": {"x": self.cursor.x, "y": self.cursor.y},
            "center": self.center.to_dict(),
            "grid": [[p.to_dict() for p in row] for row in self.grid],
            "timestamp": int(self.timestamp_ms),
        }


@dataclass(frozen=True)
class ErrorFrame:
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error}


Frame = Union[SampleFrame, ErrorFrame]


def _load_object(line: str) -> Dict[str, Any]:
    try:
        obj = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolParseError("invalid JSON", cause=e) from e
    if not isinstance(obj, dict):
        raise ProtocolParseError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def _decode_grid(raw: Any) -> PixelGrid:
    if not isinstance(raw, list):
        raise ProtocolParseError("grid must be a list of rows")
    rows: List[Tuple[PixelColor, ...]] = []
    for row in raw:
        if not isinstance(row, list):
            raise ProtocolParseError("grid row must be a list")
        rows.append(tuple(PixelColor.from_dict(c) for c in row))
    return tuple(rows)


def decode_frame(line: str) -> Frame:
    """
    Parse one line from the sampler. Raises ProtocolParseError.
    """
    obj = _load_object(line)
    if "error" in obj:
        return ErrorFrame(error=str(obj.get("error")))

    cursor = obj.get("cursor")
    if not isinstance(cursor, dict):
        raise ProtocolParseError("frame without cursor")
    return SampleFrame(
        cursor=CursorPos(x=_require_int(cursor, "x"), y=_require_int(cursor, "y")),
        center=PixelColor.from_dict(obj.get("center")),
        grid=_decode_grid(obj.get("grid", [])),
        timestamp_ms=_require_int(obj, "timestamp") if "timestamp" in obj else 0,
    )


def encode_frame(frame: Frame) -> bytes:
    return (json.dumps(frame.to_dict(), separators=(",", ":")) + "\n").encode("utf-8")


# ---------- framing ----------

class LineFramer:
    """
    Accumulates raw bytes and yields complete lines.

    The trailing fragment after the last newline stays buffered until the
    next feed(). Blank lines are skipped; CRLF is tolerated.
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._buf)

    def feed(self, chunk: bytes) -> List[str]:
        if not chunk:
            return []
        self._buf.extend(chunk)
        if b"\n" not in chunk:
            return []
        *complete, rest = bytes(self._buf).split(b"\n")
        self._buf = bytearray(rest)
        out: List[str] = []
        for raw in complete:
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                out.append(line)
        return out
