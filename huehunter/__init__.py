"""
Hue Hunter: magnifying screen colour picker.

The heavy lifting is split in two:

- SamplerProcessManager supervises the external sampler process and speaks
  its JSON-lines protocol.
- ColorPicker runs one interactive pick at a time on top of it.

    picker = ColorPicker(surface_factory=..., hotkeys=...)
    hex_or_none = await picker.pick_color()
"""
from __future__ import annotations

__version__ = "0.1.0"

from huehunter.errors import (
    CommandSendFailure,
    ProtocolParseError,
    SamplerError,
    SamplerRuntimeError,
    SpawnFailure,
    StartupTimeout,
    StreamUnavailable,
)
from huehunter.pick.grid import GridConfig, actual_cell_size, buffered_grid_size, grid_size
from huehunter.pick.session import ColorPicker, PickerOptions, SessionState
from huehunter.sampler.manager import SamplerConfig, SamplerProcessManager, SamplerState
from huehunter.sampler.protocol import ErrorFrame, PixelColor, SampleFrame

__all__ = [
    "ColorPicker",
    "PickerOptions",
    "SessionState",
    "SamplerProcessManager",
    "SamplerConfig",
    "SamplerState",
    "SampleFrame",
    "ErrorFrame",
    "PixelColor",
    "GridConfig",
    "grid_size",
    "buffered_grid_size",
    "actual_cell_size",
    "SamplerError",
    "SpawnFailure",
    "StreamUnavailable",
    "ProtocolParseError",
    "SamplerRuntimeError",
    "StartupTimeout",
    "CommandSendFailure",
]
