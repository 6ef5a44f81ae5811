# tests/test_protocol.py
from __future__ import annotations

import json

import pytest

from huehunter.errors import ProtocolParseError
from huehunter.sampler.protocol import (
    ErrorFrame,
    LineFramer,
    PixelColor,
    SampleFrame,
    StartCommand,
    StopCommand,
    UpdateGridCommand,
    decode_command,
    decode_frame,
    encode_command,
    encode_frame,
)

PX = {"r": 255, "g": 0, "b": 16, "hex": "#FF0010"}
FRAME = {"cursor": {"x": 5, "y": 7}, "center": PX, "grid": [[PX, PX], [PX, PX]], "timestamp": 1234}


def test_encode_commands_one_object_per_line() -> None:
    assert encode_command(StartCommand(grid_size=9, sample_rate=15)) == b'{"command":"start","grid_size":9,"sample_rate":15}\n'
    assert encode_command(UpdateGridCommand(grid_size=11)) == b'{"command":"update_grid","grid_size":11}\n'
    assert encode_command(StopCommand()) == b'{"command":"stop"}\n'


def test_decode_command() -> None:
    assert decode_command('{"command":"start","grid_size":9,"sample_rate":15}') == StartCommand(9, 15)
    assert decode_command('{"command":"update_grid","grid_size":13}') == UpdateGridCommand(13)
    assert decode_command('{"command":"stop"}') == StopCommand()
    with pytest.raises(ProtocolParseError):
        decode_command('{"command":"reboot"}')
    with pytest.raises(ProtocolParseError):
        decode_command('{"command":"update_grid","grid_size":"big"}')


def test_decode_sample_frame() -> None:
    f = decode_frame(json.dumps(FRAME))
    assert isinstance(f, SampleFrame)
    assert (f.cursor.x, f.cursor.y) == (5, 7)
    assert f.center == PixelColor(255, 0, 16, "#FF0010")
    assert len(f.grid) == 2 and len(f.grid[0]) == 2
    assert f.timestamp_ms == 1234


def test_decode_frame_fills_missing_hex_and_timestamp() -> None:
    f = decode_frame('{"cursor":{"x":1,"y":2},"center":{"r":1,"g":2,"b":3},"grid":[]}')
    assert isinstance(f, SampleFrame)
    assert f.center.hex == "#010203"
    assert f.timestamp_ms == 0


def test_error_key_makes_an_error_frame() -> None:
    assert decode_frame('{"error":"x"}') == ErrorFrame(error="x")
    # error 优先于其它字段
    assert isinstance(decode_frame(json.dumps({**FRAME, "error": "late"})), ErrorFrame)


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        "[1, 2]",
        '"just a string"',
        '{"center": {"r": 1, "g": 2, "b": 3}}',
        '{"cursor": {"x": "a", "y": 2}, "center": {"r": 1, "g": 2, "b": 3}}',
        '{"cursor": {"x": true, "y": 2}, "center": {"r": 1, "g": 2, "b": 3}}',
        '{"cursor": {"x": 1, "y": 2}, "center": [1, 2, 3]}',
        '{"cursor": {"x": 1, "y": 2}, "center": {"r": 1, "g": 2, "b": 3}, "grid": {"a": 1}}',
        '{"cursor": {"x": 1, "y": 2}, "center": {"r": 1, "g": 2, "b": 3}, "timestamp": "now"}',
    ],
)
def test_malformed_lines_raise_parse_error(line: str) -> None:
    with pytest.raises(ProtocolParseError):
        decode_frame(line)


def test_encode_frame_is_decodable() -> None:
    f = decode_frame(json.dumps(FRAME))
    assert encode_frame(f).endswith(b"\n")
    assert decode_frame(encode_frame(f).decode("utf-8")) == f


def test_framer_reassembles_line_split_mid_object() -> None:
    framer = LineFramer()
    first = framer.feed(json.dumps(FRAME).encode("utf-8") + b'\n{"err')
    assert len(first) == 1
    assert isinstance(decode_frame(first[0]), SampleFrame)
    assert framer.pending == b'{"err'

    second = framer.feed(b'or":"x"}\n')
    assert second == ['{"error":"x"}']
    assert framer.pending == b""


def test_framer_byte_at_a_time() -> None:
    framer = LineFramer()
    data = b'{"error":"a"}\n{"error":"b"}\n'
    lines = []
    for i in range(len(data)):
        lines.extend(framer.feed(data[i:i + 1]))
    assert lines == ['{"error":"a"}', '{"error":"b"}']


def test_framer_skips_blank_lines_and_crlf() -> None:
    framer = LineFramer()
    assert framer.feed(b'\n\r\n{"error":"a"}\r\n\n') == ['{"error":"a"}']
    assert framer.feed(b"") == []
    assert framer.feed(b"partial") == []
    assert framer.pending == b"partial"


def test_framer_keeps_split_utf8_sequence() -> None:
    framer = LineFramer()
    payload = '{"error":"café"}\n'.encode("utf-8")
    cut = payload.index(b"\xc3") + 1
    assert framer.feed(payload[:cut]) == []
    assert framer.feed(payload[cut:]) == ['{"error":"café"}']
