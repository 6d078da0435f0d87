"""Centered overlay listing the key bindings; hidden until toggled."""

from __future__ import annotations

from typing import Any

from paneldash.highlight import escape_markup
from paneldash.layout import LayoutRule
from paneldash.surface import Surface
from paneldash.views.base import LayoutEntry, ViewNode

BINDINGS: tuple[tuple[str, str], ...] = (
    ("left / right", "rotate layouts"),
    ("? / h", "toggle this help"),
    ("g", "go to time"),
    ("w / s", "zoom graphs in / out"),
    ("a / d", "scroll graphs back / forward"),
    ("z / x", "jump to start / back to live"),
    ("f", "filter env (platform panel)"),
    ("w / s / pgup / pgdn", "scroll env (platform panel)"),
    ("escape", "close overlay, or reset graphs and layout"),
    ("q / C-c", "quit"),
)


def help_text(bindings: tuple[tuple[str, str], ...] = BINDINGS) -> str:
    width = max(len(keys) for keys, _ in bindings) + 2
    lines = ["{bold}Keys{/}", ""]
    for keys, action in bindings:
        lines.append(
            f"{{cyan}}{escape_markup(keys).ljust(width)}{{/}}{escape_markup(action)}"
        )
    return "\n".join(lines)


class HelpView(ViewNode):
    def __init__(self, *, parent: Surface | None, **options: Any) -> None:
        text = help_text()
        options.setdefault(
            "layout_config",
            LayoutEntry(
                get_position=LayoutRule.of(
                    top="center",
                    left="center",
                    width=56,
                    height=len(text.split("\n")) + 2,
                )
            ),
        )
        super().__init__(parent=parent, **options)
        node = Surface(
            position=None,
            label=" Help ",
            content=text,
            border=True,
            padding=1,
            hidden=True,
            style={"border": "white"},
            name="help",
        )
        self.mount(node)

    @property
    def visible(self) -> bool:
        return self.node is not None and self.node.visible

    def toggle(self) -> None:
        if self.node is not None:
            self.node.toggle()

    def hide(self) -> None:
        if self.node is not None:
            self.node.hide()

    def set_front(self) -> None:
        if self.node is not None:
            self.node.set_front()
