# File: huehunter/input/hotkeys.py
from __future__ import annotations

import re
from typing import Callable, Protocol

from huehunter.events import Registration


class HotkeyRegistrar(Protocol):
    """
    System-wide hotkey capability.

    register() returns a handle; releasing it unregisters that callback.
    Callbacks may fire on a foreign thread.
    """

    def register(self, hotkey: str, callback: Callable[[], None]) -> Registration: ...


# 将 "ctrl+alt+p" 转为 pynput GlobalHotKeys 需要的 "<ctrl>+<alt>+p" 格式
# https://pynput.readthedocs.io/en/latest/keyboard.html#global-hotkeys

_MOD_ALIASES = {
    "ctrl": "<ctrl>",
    "control": "<ctrl>",
    "alt": "<alt>",
    "shift": "<shift>",
    "cmd": "<cmd>",
    "command": "<cmd>",
    "win": "<cmd>",
    "super": "<cmd>",
}

_SPECIAL_KEYS = {
    "esc": "<esc>",
    "escape": "<esc>",
    "enter": "<enter>",
    "return": "<enter>",
    "tab": "<tab>",
    "space": "<space>",
    "backspace": "<backspace>",
    "delete": "<delete>",
    "del": "<delete>",
    "home": "<home>",
    "end": "<end>",
    "pageup": "<page_up>",
    "pagedown": "<page_down>",
    "up": "<up>",
    "down": "<down>",
    "left": "<left>",
    "right": "<right>",
}

_FKEY_RE = re.compile(r"^f([1-9]|1[0-9]|20)$")


def normalize_hotkey(s: str) -> str:
    """'Ctrl - Alt + P' -> 'ctrl+alt+p'"""
    s = (s or "").strip().lower()
    s = s.replace(" ", "").replace("-", "+").replace("_", "+")
    while "++" in s:
        s = s.replace("++", "+")
    return s.strip("+")


def to_pynput_hotkey(s: str) -> str:
    """
    'ctrl+alt+p' -> '<ctrl>+<alt>+p', 'esc' -> '<esc>'.
    Modifiers come first and duplicates are dropped.
    """
    s = normalize_hotkey(s)
    if not s:
        raise ValueError("empty hotkey")

    mods: list[str] = []
    keys: list[str] = []
    for p in s.split("+"):
        if p in _MOD_ALIASES:
            tok = _MOD_ALIASES[p]
            if tok not in mods:
                mods.append(tok)
        elif p in _SPECIAL_KEYS:
            keys.append(_SPECIAL_KEYS[p])
        elif _FKEY_RE.match(p):
            keys.append(f"<{p}>")
        elif len(p) == 1:
            keys.append(p)
        else:
            raise ValueError(f"unknown key {p!r} in hotkey {s!r}")

    if len(keys) != 1:
        raise ValueError(f"hotkey must have exactly one non-modifier key: {s!r}")
    return "+".join(mods + keys)
