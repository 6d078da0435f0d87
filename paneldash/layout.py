"""Position calculator: rectangles and declarative layout rules.

A rule maps a parent rectangle to a child rectangle. Rules are built from
small position expressions, the same vocabulary layouts files use:

    0, 12        absolute cells from the parent's origin
    -2           two cells back from the parent's far edge
    "50%"        share of the parent's span
    "100%-2"     share plus/minus a cell offset
    "half"       same as "50%"
    "center"     (top/left only) centre the child on that axis

`resolve()` runs a rule and clamps the result so it always fits inside the
parent. It is pure, so resolving the same pair twice gives the same answer.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from paneldash.errors import ConfigurationError

_PERCENT_RE = re.compile(r"^(\d+(?:\.\d+)?)%(?:([+-])(\d+))?$")


@dataclass(frozen=True)
class Rect:
    left: int = 0
    top: int = 0
    width: int = 0
    height: int = 0

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def shrink(self, cells: int = 1) -> Rect:
        """Rect inside a border (or padding) of *cells* on every side."""
        return Rect(
            self.left + cells,
            self.top + cells,
            max(0, self.width - 2 * cells),
            max(0, self.height - 2 * cells),
        )


@dataclass(frozen=True)
class Dimension:
    """One parsed position expression."""

    percent: float = 0.0
    offset: int = 0
    center: bool = False

    @classmethod
    def parse(cls, value: Any) -> Dimension:
        if isinstance(value, Dimension):
            return value
        if isinstance(value, bool):
            raise ConfigurationError(f"invalid position expression: {value!r}")
        if isinstance(value, int):
            if value < 0:
                return cls(percent=100.0, offset=value)
            return cls(offset=value)

        text = str(value).replace(" ", "").lower()
        if text == "center":
            return cls(center=True)
        if text == "half":
            return cls(percent=50.0)
        if re.fullmatch(r"-?\d+", text):
            return cls.parse(int(text))
        m = _PERCENT_RE.match(text)
        if m is None:
            raise ConfigurationError(f"invalid position expression: {value!r}")
        offset = int(m.group(3) or 0)
        if m.group(2) == "-":
            offset = -offset
        return cls(percent=float(m.group(1)), offset=offset)

    def length(self, span: int) -> int:
        """Cells this expression covers along an axis *span* cells long."""
        if self.center:
            return span
        return int(span * self.percent / 100.0) + self.offset

    def start(self, span: int, size: int) -> int:
        """Offset from the parent's origin for a child *size* cells long."""
        if self.center:
            return (span - size) // 2
        return self.length(span)


_FULL = Dimension(percent=100.0)


@dataclass(frozen=True)
class LayoutRule:
    """Declarative position of a child inside its parent."""

    top: Dimension = Dimension()
    left: Dimension = Dimension()
    width: Dimension = _FULL
    height: Dimension = _FULL

    @classmethod
    def of(cls, **fields: Any) -> LayoutRule:
        """Build a rule from raw expressions, e.g. ``LayoutRule.of(width="50%")``."""
        unknown = set(fields) - {"top", "left", "width", "height"}
        if unknown:
            raise ConfigurationError(
                f"unknown position field(s): {', '.join(sorted(unknown))}"
            )
        for name in ("width", "height"):
            if name in fields and Dimension.parse(fields[name]).center:
                raise ConfigurationError(f"'center' is not a valid {name}")
        return cls(**{name: Dimension.parse(v) for name, v in fields.items()})

    @classmethod
    def from_mapping(cls, position: Mapping[str, Any] | None) -> LayoutRule:
        return cls.of(**dict(position or {}))

    def __call__(self, parent: Rect) -> Rect:
        width = self.width.length(parent.width)
        height = self.height.length(parent.height)
        return Rect(
            parent.left + self.left.start(parent.width, width),
            parent.top + self.top.start(parent.height, height),
            width,
            height,
        )


FILL = LayoutRule()

PositionFn = Callable[[Rect], Rect]


def resolve(parent: Rect, rule: PositionFn) -> Rect:
    """Resolve *rule* against *parent*, clamped to fit inside it."""
    rect = rule(parent)
    width = min(max(0, rect.width), parent.width)
    height = min(max(0, rect.height), parent.height)
    left = min(max(rect.left, parent.left), parent.right - width)
    top = min(max(rect.top, parent.top), parent.bottom - height)
    return Rect(left, top, width, height)
