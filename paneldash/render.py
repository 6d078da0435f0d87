"""Curses painter for the surface tree, plus the shared drawing primitives.

The tree is repainted from scratch whenever the screen is dirty: children
paint after (over) their parent, siblings in list order, so the last child
is the front-most one.
"""

from __future__ import annotations

import curses
from collections import deque
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from paneldash.highlight import escape_markup, parse_markup, strip_markup

if TYPE_CHECKING:
    from paneldash.surface import Screen, Surface

# ── Constants ──────────────────────────────────────────────────────────────

SPARK = " ▁▂▃▄▅▆▇█"
BAR_FILL = "█"
BAR_EMPTY = "░"
MIN_WIDTH = 40
MIN_HEIGHT = 10

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_BLUE = 6

COLOR_PAIRS: dict[str, int] = {
    "green": C_NORMAL,
    "yellow": C_WARNING,
    "red": C_CRITICAL,
    "cyan": C_TITLE,
    "white": C_DIM,
    "blue": C_BLUE,
}

# ── Colour helpers ─────────────────────────────────────────────────────────


def init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_WARNING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_CRITICAL, curses.COLOR_RED, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_BLUE, curses.COLOR_BLUE, -1)


def severity_color(value: float, warn: float, crit: float) -> int:
    if value >= crit:
        return C_CRITICAL
    if value >= warn:
        return C_WARNING
    return C_NORMAL


def _color_attr(name: str | None) -> int:
    if not name or name not in COLOR_PAIRS:
        return 0
    return curses.color_pair(COLOR_PAIRS[name])


def _style_attr(styles: frozenset[str]) -> int:
    attr = 0
    for style in styles:
        if style in COLOR_PAIRS:
            attr |= curses.color_pair(COLOR_PAIRS[style])
        elif style == "bold":
            attr |= curses.A_BOLD
        elif style == "inverse":
            attr |= curses.A_REVERSE
        elif style == "underline":
            attr |= curses.A_UNDERLINE
    return attr


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int | float) -> str:
    """Human-readable byte count (binary prefixes)."""
    v = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(v) < 1024:
            return f"{v:.1f} {unit}"
        v /= 1024
    return f"{v:.1f} TiB"


def fmt_rate(bps: float) -> str:
    """Human-readable transfer rate."""
    if bps < 1024:
        return f"{bps:.0f} B/s"
    if bps < 1024 * 1024:
        return f"{bps / 1024:.1f} KB/s"
    if bps < 1024**3:
        return f"{bps / 1024 ** 2:.1f} MB/s"
    return f"{bps / 1024 ** 3:.1f} GB/s"


# ── Curses drawing primitives ──────────────────────────────────────────────


def safe_addstr(win: Any, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def draw_box(
    win: Any,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
    color: int = 0,
) -> Any | None:
    """Clear and draw a bordered box; return it as a sub-window."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        sub.erase()
        if color:
            sub.attron(color)
        sub.box()
        if color:
            sub.attroff(color)
        if title and len(title) + 4 < w:
            sub.addstr(
                0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD
            )
        return sub
    except curses.error:
        return None


def draw_bar(
    win: Any,
    y: int,
    x: int,
    width: int,
    pct: float,
    label: str = "",
    color: int = C_NORMAL,
    suffix: str | None = None,
) -> None:
    """Render ``label ████░░░░ suffix`` on one line."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return

    cx = x
    if label:
        safe_addstr(win, y, cx, f"{label:>6s} ", curses.color_pair(C_DIM))
        cx += 7

    if suffix is None:
        suffix = f" {pct:5.1f}%"

    bar_w = min(width - (cx - x) - len(suffix), max_x - cx - len(suffix) - 1)
    if bar_w < 3:
        return

    filled = int(bar_w * min(pct, 100.0) / 100.0)
    empty = bar_w - filled

    safe_addstr(win, y, cx, BAR_FILL * filled, curses.color_pair(color) | curses.A_BOLD)
    safe_addstr(win, BAR_EMPTY * empty, curses.color_pair(C_DIM))
    safe_addstr(win, suffix, curses.color_pair(color) | curses.A_BOLD)


def spark_chars(values: Sequence[float], max_val: float = 100.0) -> str:
    chars: list[str] = []
    for v in values:
        idx = int(min(v / max_val, 1.0) * (len(SPARK) - 1)) if max_val else 0
        chars.append(SPARK[max(0, min(idx, len(SPARK) - 1))])
    return "".join(chars)


def draw_sparkline(
    win: Any,
    y: int,
    x: int,
    width: int,
    history: Sequence[float] | deque[float],
    max_val: float = 100.0,
    color: int = C_BLUE,
) -> None:
    """Render a sparkline from the most recent *width* history values."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return
    w = min(width, max_x - x - 1, len(history))
    if w < 1:
        return
    values = list(history)[-w:]
    safe_addstr(win, y, x, spark_chars(values, max_val), curses.color_pair(color))


def draw_markup(win: Any, y: int, x: int, line: str, width: int, base: int = 0) -> None:
    """Draw one markup line, clipped to *width* cells."""
    cx = x
    remaining = width
    for text, styles in parse_markup(line):
        if remaining <= 0:
            break
        chunk = text[:remaining]
        safe_addstr(win, y, cx, chunk, base | _style_attr(styles))
        cx += len(chunk)
        remaining -= len(chunk)


# ── Surface tree ───────────────────────────────────────────────────────────


def draw_screen(stdscr: Any, screen: Screen) -> None:
    stdscr.erase()
    max_y, max_x = stdscr.getmaxyx()
    if max_y < MIN_HEIGHT or max_x < MIN_WIDTH:
        safe_addstr(stdscr, 0, 0, f"Terminal too small (need {MIN_WIDTH}x{MIN_HEIGHT}+)")
    else:
        screen.layout()
        for child in list(screen.children):
            _paint(stdscr, child)
    stdscr.refresh()
    screen.dirty = False


def _paint(stdscr: Any, surface: Surface) -> None:
    if not surface.visible:
        return
    r = surface.rect
    if r.width <= 0 or r.height <= 0:
        return

    style = surface.style
    focus_color = style.get("focus") if surface.focused else None
    fg = _color_attr(focus_color or style.get("fg"))
    if style.get("underline"):
        fg |= curses.A_UNDERLINE

    box = None
    if surface.border:
        box = draw_box(
            stdscr,
            r.top,
            r.left,
            r.height,
            r.width,
            surface.label.strip(),
            _color_attr(focus_color or style.get("border")),
        )
        if box is None:
            return

    inner = surface.inner
    lines = _text_lines(surface)
    visible = lines[surface.scroll_offset : surface.scroll_offset + inner.height]
    for row, line in enumerate(visible):
        x = inner.left
        if style.get("align") == "center":
            x += max(0, (inner.width - len(strip_markup(line))) // 2)
        if style.get("underline"):
            safe_addstr(stdscr, inner.top + row, inner.left, " " * inner.width, fg)
        draw_markup(stdscr, inner.top + row, x, line, inner.right - x, fg)

    if surface.painter is not None and box is not None:
        surface.painter(box, surface)

    for child in list(surface.children):
        _paint(stdscr, child)


def _text_lines(surface: Surface) -> list[str]:
    value = getattr(surface, "value", None)
    if isinstance(value, str):
        return [escape_markup(value)]
    return surface.content_lines()
