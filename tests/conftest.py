"""Shared fixtures: a manual clock and a headless screen."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from paneldash.events import Scheduler
from paneldash.highlight import DetailRow
from paneldash.keys import KeyEvent
from paneldash.surface import Screen

_KEY_CHARS = {
    "space": " ",
    "enter": "\r",
    "escape": "\x1b",
    "tab": "\t",
    "backspace": "\b",
}


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeInfo:
    """Deterministic stand-in for the platform info provider."""

    def __init__(self) -> None:
        self.uptime = "00:00:01"
        self.env = [
            DetailRow("HOME", "/home/ada"),
            DetailRow("PATH", "/usr/bin:/bin"),
            DetailRow("SHELL", "/bin/zsh"),
        ]

    def process_details(self) -> list[DetailRow]:
        return [DetailRow("PID", "42"), DetailRow("Uptime", self.uptime)]

    def system_details(self) -> list[DetailRow]:
        return [DetailRow("Type", "Linux")]

    def user_details(self) -> list[DetailRow]:
        return [DetailRow("User Name", "ada")]

    def cpu_details(self) -> list[DetailRow]:
        return [DetailRow("[0]", "cpu"), DetailRow("[1]", "cpu")]

    def env_details(self) -> list[DetailRow]:
        return list(self.env)


def make_key(full: str) -> KeyEvent:
    """KeyEvent for a canonical identifier such as ``"S-f"`` or ``"C-c"``."""
    flags = {"C-": False, "M-": False, "S-": False}
    name = full
    while len(name) > 2 and name[:2] in flags:
        flags[name[:2]] = True
        name = name[2:]
    ch = name if len(name) == 1 else _KEY_CHARS.get(name)
    if ch is not None and len(ch) == 1 and ch.isalpha():
        if flags["S-"]:
            ch = ch.upper()
        elif flags["C-"]:
            ch = chr(ord(ch) - 96)
    return KeyEvent(name, ch, ctrl=flags["C-"], meta=flags["M-"], shift=flags["S-"])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def screen(clock: FakeClock) -> Screen:
    return Screen(80, 24, scheduler=Scheduler(clock))


@pytest.fixture
def press(screen: Screen) -> Callable[..., None]:
    def feed(*keys: str) -> None:
        for full in keys:
            screen.feed_key(make_key(full))

    return feed
