"""Key identifiers and the global/local key router.

Curses hands us integer key codes. They are translated into `KeyEvent`s
whose ``full`` name is the canonical identifier used in bindings:
``"a"``, ``"S-a"`` (shifted letter), ``"C-c"``, ``"M-x"``, ``"left"``,
``"enter"``, ``"escape"``, ``"pageup"`` and so on.
"""

from __future__ import annotations

import curses
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from paneldash.events import Subscription
    from paneldash.surface import Screen, Surface

ESCAPE = 27

_SPECIAL: dict[int, str] = {
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_PPAGE: "pageup",
    curses.KEY_NPAGE: "pagedown",
    curses.KEY_HOME: "home",
    curses.KEY_END: "end",
    curses.KEY_DC: "delete",
    curses.KEY_IC: "insert",
    curses.KEY_BACKSPACE: "backspace",
    curses.KEY_ENTER: "enter",
    curses.KEY_RESIZE: "resize",
    curses.KEY_BTAB: "S-tab",
    127: "backspace",
    8: "backspace",
    9: "tab",
    10: "enter",
    13: "enter",
}

_CHARS: dict[str, str] = {
    "backspace": "\b",
    "tab": "\t",
    "enter": "\r",
}


@dataclass(frozen=True)
class KeyEvent:
    name: str
    ch: str | None = None
    ctrl: bool = False
    meta: bool = False
    shift: bool = False

    @property
    def full(self) -> str:
        prefix = ""
        if self.ctrl:
            prefix += "C-"
        if self.meta:
            prefix += "M-"
        if self.shift:
            prefix += "S-"
        return prefix + self.name


def key_event_from_code(code: int, next_code: int | None = None) -> KeyEvent:
    """Translate a curses key code.

    *next_code* is the code read right after an ESC (or -1/None if nothing
    followed). ESC + key is how terminals send Meta/Alt combinations.
    """
    if code == ESCAPE:
        if next_code is None or next_code < 0:
            return KeyEvent("escape", "\x1b")
        inner = key_event_from_code(next_code)
        return KeyEvent(inner.name, inner.ch, inner.ctrl, True, inner.shift)

    name = _SPECIAL.get(code)
    if name is not None:
        if name == "S-tab":
            return KeyEvent("tab", None, shift=True)
        return KeyEvent(name, _CHARS.get(name))

    if 1 <= code <= 26:
        return KeyEvent(chr(code + 96), chr(code), ctrl=True)
    if code == 0:
        return KeyEvent("space", "\0", ctrl=True)
    if code == 32:
        return KeyEvent("space", " ")
    if 32 < code < 127:
        ch = chr(code)
        if ch.isalpha() and ch.isupper():
            return KeyEvent(ch.lower(), ch, shift=True)
        return KeyEvent(ch, ch)
    return KeyEvent(f"key{code}")


def read_key(window: Any) -> KeyEvent | None:
    """Read one key from a curses window (honouring its timeout)."""
    code = window.getch()
    if code == -1:
        return None
    if code == ESCAPE:
        window.nodelay(True)
        try:
            follow = window.getch()
        finally:
            window.nodelay(False)
        return key_event_from_code(code, follow)
    return key_event_from_code(code)


# ── Router ─────────────────────────────────────────────────────────────────


def classify(global_keys: Iterable[str], local_keys: Iterable[str]) -> list[str]:
    """Keys that bubble: the global ones a surface does not consume itself."""
    local = set(local_keys)
    return [k for k in dict.fromkeys(global_keys) if k not in local]


class KeyRouter:
    """Bubbles global keys from surfaces to the screen's ``key`` event.

    Bindings are installed when a surface is attached and removed when it
    is detached, so a destroyed surface never forwards another key.
    """

    def __init__(
        self, global_keys: Iterable[str], local_keys: Iterable[str] = ()
    ) -> None:
        self.keys = classify(global_keys, local_keys)
        self._installed: list[tuple[Surface, Screen]] = []
        self._subscriptions: list[Subscription] = []

    def listen(self, *surfaces: Surface) -> None:
        for surface in surfaces:
            self._subscriptions.append(
                surface.on("attach", lambda s=surface: self.install(s))
            )
            self._subscriptions.append(
                surface.on("detach", lambda s=surface: self.remove(s))
            )
            if surface.attached:
                self.install(surface)

    def install(self, surface: Surface) -> None:
        screen = surface.screen
        if screen is None or self._find(surface) is not None:
            return
        surface.key(self.keys, self._bubble)
        self._installed.append((surface, screen))

    def remove(self, surface: Surface) -> None:
        i = self._find(surface)
        if i is None:
            return
        surface.unkey(self.keys, self._bubble)
        del self._installed[i]

    def close(self) -> None:
        for surface, _ in list(self._installed):
            self.remove(surface)
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()

    def _find(self, surface: Surface) -> int | None:
        for i, (s, _) in enumerate(self._installed):
            if s is surface:
                return i
        return None

    def _bubble(self, event: KeyEvent) -> None:
        # every installed surface shares the one screen
        if self._installed:
            self._installed[0][1].emit("key", event)
