"""Filtering and highlighting of label/value detail rows.

Rendered text uses a small tag markup understood by the curses painter:
``{cyan}``, ``{green}``, ``{red}``, ``{yellow}``, ``{bold}``, ``{inverse}``
switch styles on, ``{/}`` resets them, and ``{open}``/``{close}`` stand for
literal braces. Data is always escaped before it is wrapped in tags, so a
value containing ``{bold}`` prints as text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

LABEL_STYLE = "{cyan}{bold}"
VALUE_STYLE = "{green}"
EMPHASIS = "{inverse}"
RESET = "{/}"

COLORS = ("cyan", "green", "red", "yellow", "blue", "white")
ATTRIBUTES = ("bold", "inverse", "underline")

_TAG_RE = re.compile(
    r"\{(/|open|close|" + "|".join(COLORS + ATTRIBUTES) + r")\}"
)


@dataclass(frozen=True)
class DetailRow:
    label: str
    value: str


def escape_markup(text: str) -> str:
    return re.sub(r"[{}]", lambda m: "{open}" if m.group() == "{" else "{close}", text)


def split_terms(text: str) -> list[str]:
    """Whitespace-delimited, non-empty, de-duplicated terms in input order."""
    return list(dict.fromkeys(text.split()))


def compile_terms(terms: Iterable[str]) -> re.Pattern[str] | None:
    """One case-insensitive alternation of the literal terms, or None."""
    parts = [re.escape(t) for t in terms if t and not t.isspace()]
    if not parts:
        return None
    return re.compile("|".join(parts), re.IGNORECASE)


def filter_rows(rows: Sequence[DetailRow], terms: Iterable[str]) -> list[DetailRow]:
    """Rows where every term appears in the label or the value.

    Matching is case-insensitive and literal. No terms keeps every row.
    """
    patterns = [
        re.compile(re.escape(t), re.IGNORECASE)
        for t in terms
        if t and not t.isspace()
    ]
    return [
        row
        for row in rows
        if all(p.search(row.label) or p.search(str(row.value)) for p in patterns)
    ]


def apply_highlights(text: str, pattern: re.Pattern[str] | None, normal: str) -> str:
    if pattern is None:
        return normal + escape_markup(text)
    out = [normal]
    pos = 0
    for m in pattern.finditer(text):
        out.append(escape_markup(text[pos : m.start()]))
        out.append(EMPHASIS + escape_markup(m.group()) + RESET + normal)
        pos = m.end()
    out.append(escape_markup(text[pos:]))
    return "".join(out)


def render_rows(rows: Sequence[DetailRow], terms: Iterable[str] | None = None) -> str:
    """Aligned ``label  value`` lines, matches wrapped in emphasis."""
    longest = max((len(row.label) for row in rows), default=0)
    pattern = compile_terms(terms or ())
    lines = [
        apply_highlights(row.label, pattern, LABEL_STYLE)
        + RESET
        + " " * (longest - len(row.label) + 1)
        + apply_highlights(str(row.value), pattern, VALUE_STYLE)
        + RESET
        for row in rows
    ]
    return "\n".join(lines)


# ── Markup parsing (used by the painter) ───────────────────────────────────


def parse_markup(line: str) -> list[tuple[str, frozenset[str]]]:
    """Split a markup line into ``(text, styles)`` runs."""
    runs: list[tuple[str, frozenset[str]]] = []
    styles: set[str] = set()
    buf: list[str] = []

    def flush() -> None:
        if buf:
            runs.append(("".join(buf), frozenset(styles)))
            buf.clear()

    pos = 0
    for m in _TAG_RE.finditer(line):
        buf.append(line[pos : m.start()])
        tag = m.group(1)
        if tag == "open":
            buf.append("{")
        elif tag == "close":
            buf.append("}")
        else:
            flush()
            if tag == "/":
                styles.clear()
            else:
                if tag in COLORS:
                    styles.difference_update(COLORS)
                styles.add(tag)
        pos = m.end()
    buf.append(line[pos:])
    flush()
    return [(text, s) for text, s in runs if text]


def strip_markup(line: str) -> str:
    return "".join(text for text, _ in parse_markup(line))
