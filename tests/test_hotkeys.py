# tests/test_hotkeys.py
from __future__ import annotations

import pytest

from huehunter.input.hotkeys import normalize_hotkey, to_pynput_hotkey


def test_normalize_hotkey() -> None:
    assert normalize_hotkey(" Ctrl - Alt + P ") == "ctrl+alt+p"
    assert normalize_hotkey("ctrl++shift") == "ctrl+shift"
    assert normalize_hotkey("") == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("esc", "<esc>"),
        ("Escape", "<esc>"),
        ("ctrl+alt+p", "<ctrl>+<alt>+p"),
        ("p+ctrl", "<ctrl>+p"),
        ("control+ctrl+k", "<ctrl>+k"),
        ("shift+f12", "<shift>+<f12>"),
        ("cmd+space", "<cmd>+<space>"),
    ],
)
def test_to_pynput_hotkey(raw: str, expected: str) -> None:
    assert to_pynput_hotkey(raw) == expected


@pytest.mark.parametrize("raw", ["", "ctrl+alt", "ctrl+a+b", "ctrl+f25", "hyper+x"])
def test_to_pynput_hotkey_rejects_invalid(raw: str) -> None:
    with pytest.raises(ValueError):
        to_pynput_hotkey(raw)
