from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from huehunter.models.common import as_bool, as_dict, as_int, as_str, as_str_list, clamp_int


@dataclass
class PickerSettings:
    initial_diameter: int = 180
    initial_cell_size: int = 20
    sample_rate_hz: int = 15
    startup_timeout_ms: int = 30_000
    grid_buffer: int = 0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PickerSettings":
        d = as_dict(d)
        return PickerSettings(
            initial_diameter=clamp_int(as_int(d.get("initial_diameter", 180), 180), 60, 1000),
            initial_cell_size=clamp_int(as_int(d.get("initial_cell_size", 20), 20), 4, 100),
            sample_rate_hz=clamp_int(as_int(d.get("sample_rate_hz", 15), 15), 1, 120),
            startup_timeout_ms=clamp_int(as_int(d.get("startup_timeout_ms", 30_000), 30_000), 1000, 300_000),
            grid_buffer=clamp_int(as_int(d.get("grid_buffer", 0), 0), 0, 8),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_diameter": int(self.initial_diameter),
            "initial_cell_size": int(self.initial_cell_size),
            "sample_rate_hz": int(self.sample_rate_hz),
            "startup_timeout_ms": int(self.startup_timeout_ms),
            "grid_buffer": int(self.grid_buffer),
        }


@dataclass
class SamplerSettings:
    command: List[str] = field(default_factory=list)  # empty -> auto-locate
    stop_timeout_ms: int = 500
    kill_grace_ms: int = 100

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SamplerSettings":
        d = as_dict(d)
        return SamplerSettings(
            command=as_str_list(d.get("command", [])),
            stop_timeout_ms=clamp_int(as_int(d.get("stop_timeout_ms", 500), 500), 50, 10_000),
            kill_grace_ms=clamp_int(as_int(d.get("kill_grace_ms", 100), 100), 10, 5_000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": list(self.command),
            "stop_timeout_ms": int(self.stop_timeout_ms),
            "kill_grace_ms": int(self.kill_grace_ms),
        }


@dataclass
class HotkeySettings:
    start_pick: str = "ctrl+alt+p"
    cancel_pick: str = "esc"

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "HotkeySettings":
        d = as_dict(d)
        return HotkeySettings(
            start_pick=as_str(d.get("start_pick", "ctrl+alt+p"), "ctrl+alt+p"),
            cancel_pick=as_str(d.get("cancel_pick", "esc"), "esc"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"start_pick": self.start_pick, "cancel_pick": self.cancel_pick}


@dataclass
class LoggingSettings:
    level: str = "INFO"
    console: bool = False
    keep_days: int = 14

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "LoggingSettings":
        d = as_dict(d)
        return LoggingSettings(
            level=as_str(d.get("level", "INFO"), "INFO").upper() or "INFO",
            console=as_bool(d.get("console", False), False),
            keep_days=clamp_int(as_int(d.get("keep_days", 14), 14), 1, 365),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "console": bool(self.console), "keep_days": int(self.keep_days)}


@dataclass
class Settings:
    """
    Root of settings.json.
    """
    schema_version: int = 1
    picker: PickerSettings = field(default_factory=PickerSettings)
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    hotkeys: HotkeySettings = field(default_factory=HotkeySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Settings":
        d = as_dict(d)
        return Settings(
            schema_version=as_int(d.get("schema_version", 1), 1),
            picker=PickerSettings.from_dict(d.get("picker", {}) or {}),
            sampler=SamplerSettings.from_dict(d.get("sampler", {}) or {}),
            hotkeys=HotkeySettings.from_dict(d.get("hotkeys", {}) or {}),
            logging=LoggingSettings.from_dict(d.get("logging", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": int(self.schema_version),
            "picker": self.picker.to_dict(),
            "sampler": self.sampler.to_dict(),
            "hotkeys": self.hotkeys.to_dict(),
            "logging": self.logging.to_dict(),
        }
