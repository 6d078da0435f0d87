"""Platform details: process, system, user and CPU facts plus a filterable env list."""

from __future__ import annotations

import logging
from typing import Any

from paneldash.dialogs import create_filter_env_dialog
from paneldash.highlight import DetailRow, filter_rows, render_rows, split_terms
from paneldash.keys import KeyEvent
from paneldash.layout import LayoutRule
from paneldash.platform_info import PlatformInfo
from paneldash.surface import Surface
from paneldash.views.base import ViewNode

logger = logging.getLogger(__name__)

SCROLL_KEYS = ("w", "S-w", "s", "S-s", "pageup", "pagedown")
FILTER_KEYS = ("f", "S-f", "C-f")
NO_MATCH_TEXT = "{red}{bold}No env variables found matching filter criteria{/}"

# a bordered box needs two rows beyond its content
_BOX_CHROME = 2


class PlatformDetailsView(ViewNode):
    remount_on_resize = True
    local_keys = SCROLL_KEYS + FILTER_KEYS

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        if self.info_provider is None:
            self.info_provider = PlatformInfo()
        self._filter = ""
        self.filter_dialog = create_filter_env_dialog(self.parent)
        try:
            self._build()
            self._bind()
        except Exception:
            self.destroy()
            raise

    def default_layout_config(self) -> dict[str, Any]:
        return {"title": "platform", "border_color": "cyan", "refresh": 1.0}

    @property
    def filter(self) -> str:
        return self._filter

    def _build(self) -> None:
        cfg = self.layout_config
        border = cfg.get("border_color", "white")
        node = Surface(
            position=None,
            label=f" {cfg['title']} ",
            border=True,
            style={"border": border},
            name="platform",
        )
        self.mount(node)

        info = self.info_provider
        self.sections: dict[str, Surface] = {}
        top = 0
        for name, rows in (
            ("Process", info.process_details()),
            ("System", info.system_details()),
            ("User", info.user_details()),
            ("CPU(s)", info.cpu_details()),
        ):
            box = Surface(
                position=LayoutRule.of(
                    top=top, width="33%", height=len(rows) + _BOX_CHROME
                ),
                label=f" {name} ",
                content=render_rows(rows),
                border=True,
                padding=1,
                style={"border": border},
                name=name.lower(),
            )
            node.append(box)
            self.sections[name] = box
            top += len(rows) + _BOX_CHROME

        self.env_box = Surface(
            position=LayoutRule.of(left="33%", width="67%"),
            label=" env ",
            content=render_rows(info.env_details()),
            border=True,
            padding=1,
            scrollable=True,
            style={"border": border, "focus": "yellow"},
            name="env",
        )
        node.append(self.env_box)
        self.env_box.focus()

    def _bind(self) -> None:
        self.bind_local(self.env_box, SCROLL_KEYS, self._on_scroll_key)
        self.bind_local(self.env_box, FILTER_KEYS, self._on_filter_key)
        self.listen_global_keys(self.env_box)
        self.subscribe(self.filter_dialog, "validated", self.set_filter)
        self.subscribe(
            self.filter_dialog,
            "text_changed",
            lambda ch, event, text: self.set_filter(text),
        )
        self.schedule_every(float(self.layout_config["refresh"]), self.refresh)

    # ── keys ───────────────────────────────────────────────────────────────

    def _on_scroll_key(self, event: KeyEvent) -> None:
        page = max(1, self.env_box.inner.height)
        delta = {
            "w": -1,
            "S-w": -1,
            "s": 1,
            "S-s": 1,
            "pageup": -page,
            "pagedown": page,
        }[event.full]
        self.env_box.scroll(delta)

    def _on_filter_key(self, event: KeyEvent) -> None:
        self.filter_dialog.toggle()
        if self.filter_dialog.is_visible():
            self.filter_dialog.set_value(self._filter)

    # ── filtering ──────────────────────────────────────────────────────────

    def set_filter(self, text: str) -> None:
        if text != self._filter:
            before, self._filter = self._filter, text
            self.on_filter_change(before, text)

    def on_filter_change(self, before: str, after: str) -> None:
        terms = split_terms(after)
        rows: list[DetailRow] = filter_rows(self.info_provider.env_details(), terms)
        logger.debug("env filter %r -> %r: %d rows", before, after, len(rows))
        self.env_box.set_label(" env (subsetted) " if terms else " env ")
        self.env_box.reset_scroll()
        self.env_box.set_content(render_rows(rows, terms) if rows else NO_MATCH_TEXT)

    def refresh(self) -> None:
        """Re-read the facts that change while running (uptimes)."""
        self.sections["Process"].set_content(
            render_rows(self.info_provider.process_details())
        )
        self.sections["System"].set_content(
            render_rows(self.info_provider.system_details())
        )

    def destroy(self) -> None:
        self.filter_dialog.destroy()
        super().destroy()
