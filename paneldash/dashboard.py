"""Interactive terminal dashboard: layouts of live panels driven by the keyboard.

Each layout is a list of panels positioned inside a full-screen container.
Left/right roll between layouts, ``g`` opens "go to time", ``?`` shows the
key help, and the platform panel filters its environment list with ``f``.

Usage:
    paneldash
    paneldash --interval 2 --layouts layouts.toml --set cpu.warning=70
"""

from __future__ import annotations

import argparse
import curses
import importlib
import logging
import sys
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, NoReturn

from paneldash.config import (
    GLOBAL_KEYS,
    Layout,
    _deep_merge,
    apply_overrides,
    dump_default_config,
    load_config,
    load_layouts,
)
from paneldash.dialogs import InputDialog, create_goto_time_dialog
from paneldash.errors import ConfigurationError, UnknownPanelTypeError
from paneldash.events import ScheduledTask, Subscription
from paneldash.keys import KeyEvent, KeyRouter, read_key
from paneldash.logging_config import setup_logging
from paneldash.metrics import MetricsProvider, SystemCollector
from paneldash.platform_info import PlatformInfo
from paneldash.render import draw_screen, init_colors
from paneldash.surface import Screen, Surface
from paneldash.views.base import LayoutEntry, ViewNode
from paneldash.views.help import HelpView
from paneldash.views.panels import CpuView, MemoryView, ProcessView
from paneldash.views.platform import PlatformDetailsView

logger = logging.getLogger(__name__)

ROLL_THROTTLE_SECONDS = 0.15

# ── Panel registry ─────────────────────────────────────────────────────────


class PanelRegistry:
    """Maps a layout entry's ``type`` (or ``module``) to a view class.

    An extension module exposes ``build_view(ViewNode) -> type`` and is
    imported the first time a layout names it.
    """

    def __init__(self) -> None:
        self._types: dict[str, type[ViewNode]] = {}
        self._modules: dict[str, type[ViewNode]] = {}

    @classmethod
    def default(cls) -> PanelRegistry:
        registry = cls()
        registry.register("cpu", CpuView)
        registry.register("memory", MemoryView)
        registry.register("processes", ProcessView)
        registry.register("platform_details", PlatformDetailsView)
        return registry

    def register(self, name: str, view_class: type[ViewNode]) -> None:
        self._types[name] = view_class

    @property
    def types(self) -> list[str]:
        return list(self._types)

    def load_module(self, path: str) -> type[ViewNode]:
        cached = self._modules.get(path)
        if cached is not None:
            return cached
        try:
            module = importlib.import_module(path)
        except ImportError as e:
            raise ConfigurationError(f"cannot import panel module {path!r}: {e}") from e
        build = getattr(module, "build_view", None)
        if not callable(build):
            raise ConfigurationError(f"panel module {path!r} has no build_view()")
        view_class = build(ViewNode)
        if not (isinstance(view_class, type) and issubclass(view_class, ViewNode)):
            raise ConfigurationError(
                f"build_view() in {path!r} must return a ViewNode subclass"
            )
        self._modules[path] = view_class
        logger.info("loaded panel module %s", path)
        return view_class

    def get(self, view: dict[str, Any]) -> type[ViewNode]:
        panel_type = view.get("type")
        if panel_type:
            view_class = self._types.get(str(panel_type))
            if view_class is not None:
                return view_class
        if view.get("module"):
            return self.load_module(str(view["module"]))
        raise UnknownPanelTypeError(str(panel_type or ""))

    def validate(self, layouts: Iterable[Layout]) -> None:
        """Resolve every entry up front so a bad layout fails at startup."""
        for layout in layouts:
            for entry in layout.entries:
                self.get(entry.view)


# ── Dashboard ──────────────────────────────────────────────────────────────


class Dashboard:
    """Owns the container, help overlay, goto dialog and the active layout's views."""

    def __init__(
        self,
        screen: Screen,
        layouts: Sequence[Layout],
        *,
        metrics_provider: Any,
        info_provider: Any = None,
        registry: PanelRegistry | None = None,
        settings: dict[str, Any] | None = None,
        global_keys: Iterable[str] = GLOBAL_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not layouts:
            raise ConfigurationError("at least one layout is required")
        self.screen = screen
        self.layouts = list(layouts)
        self.metrics_provider = metrics_provider
        self.info_provider = info_provider
        self.registry = registry or PanelRegistry.default()
        self.registry.validate(self.layouts)
        self.settings: dict[str, Any] = dict(settings or {})
        self.global_keys = list(global_keys)
        self._clock = clock
        self._last_roll: float | None = None
        self._sample_task: ScheduledTask | None = None

        self.running = True
        self.exit_code: int | None = None
        self.views: list[ViewNode] = []
        self.current_layout: int | None = None

        self.container = Surface(name="container")
        screen.append(self.container)
        self.help_view = HelpView(parent=self.container)
        self.goto_dialog: InputDialog = create_goto_time_dialog(
            self.container, metrics_provider
        )

        self._actions: dict[str, Callable[[KeyEvent], None]] = {}
        for keys, action in (
            (("left", "right"), self._roll_layout),
            (("?", "h", "S-h"), self._toggle_help),
            (("g", "S-g"), self._toggle_goto_time),
            (("w", "S-w", "s", "S-s"), self._zoom_graphs),
            (("a", "S-a", "d", "S-d"), self._scroll_graphs),
            (("z", "S-z", "x", "S-x"), self._start_graphs),
            (("q", "S-q"), lambda event: self.quit()),
            (("escape",), self._reset_display),
        ):
            for key in keys:
                self._actions[key] = action

        self._key_subscription: Subscription | None = screen.on("key", self._on_key)
        self._resized_subscription: Subscription | None = screen.on(
            "resized", self._restack_overlays
        )
        screen.reserve_key("C-c", lambda event: self.quit())
        self._router = KeyRouter(self.global_keys)
        self._router.listen(self.container)

        unhandled = self.unhandled_global_keys()
        if unhandled:
            logger.warning("global keys with no action: %s", ", ".join(unhandled))

        self.activate_layout(0)

    # ── layouts ────────────────────────────────────────────────────────────

    def activate_layout(self, index: int) -> None:
        if index == self.current_layout:
            return
        layout = self.layouts[index]
        for view in self.views:
            view.destroy()
        self.views = []

        while self.screen.focus_pop() is not None:
            pass
        self.container.focus()

        try:
            for entry in layout.entries:
                self.views.append(self._create_view(entry))
        except Exception as e:
            logger.error("layout %d (%s) failed to build: %s", index, layout.name, e)
            for view in self.views:
                view.destroy()
            self.views = []
            self.current_layout = None
            raise

        self.current_layout = index
        self.help_view.set_front()
        self.screen.render()
        logger.info("layout %d (%s) active, %d panels", index, layout.name, len(self.views))

    def _restack_overlays(self) -> None:
        self.help_view.set_front()
        if self.goto_dialog.is_visible():
            self.goto_dialog.form.set_front()

    def _create_view(self, entry: LayoutEntry) -> ViewNode:
        view_class = self.registry.get(entry.view)
        view = entry.view
        overrides = self.settings.get(entry.type)
        if isinstance(overrides, dict):
            view = _deep_merge(view, overrides)
        return view_class(
            parent=self.container,
            layout_config=LayoutEntry(get_position=entry.get_position, view=view),
            global_keys=self.global_keys,
            metrics_provider=self.metrics_provider,
            info_provider=self.info_provider,
        )

    # ── keys ───────────────────────────────────────────────────────────────

    def unhandled_global_keys(self) -> list[str]:
        return [k for k in self.global_keys if k not in self._actions]

    def _on_key(self, event: KeyEvent) -> None:
        action = self._actions.get(event.full)
        if action is not None:
            action(event)

    def _roll_layout(self, event: KeyEvent) -> None:
        now = self._clock()
        if self._last_roll is not None and now - self._last_roll < ROLL_THROTTLE_SECONDS:
            return
        self._last_roll = now
        delta = -1 if event.name == "left" else 1
        current = self.current_layout or 0
        self.activate_layout((current + delta) % len(self.layouts))

    def _toggle_help(self, event: KeyEvent) -> None:
        self.help_view.toggle()
        self.screen.render()

    def _toggle_goto_time(self, event: KeyEvent) -> None:
        self.help_view.hide()
        self.goto_dialog.toggle()
        self.screen.render()

    def _zoom_graphs(self, event: KeyEvent) -> None:
        self.screen.emit("zoom_graphs", -1 if event.name == "s" else 1)
        self.screen.render()

    def _scroll_graphs(self, event: KeyEvent) -> None:
        self.screen.emit("scroll_graphs", -1 if event.name == "a" else 1)
        self.screen.render()

    def _start_graphs(self, event: KeyEvent) -> None:
        self.screen.emit("start_graphs", -1 if event.name == "z" else 1)
        self.screen.render()

    def _reset_display(self, event: KeyEvent) -> None:
        if self.help_view.visible or self.goto_dialog.is_visible():
            self.help_view.hide()
            self.goto_dialog.hide()
            self.screen.render()
        else:
            self.screen.emit("reset_graphs")
            self.activate_layout(0)

    # ── lifecycle ──────────────────────────────────────────────────────────

    def start_sampling(self, interval: float) -> None:
        """Sample now, then every *interval* seconds."""
        self.metrics_provider.sample()
        self._sample_task = self.screen.scheduler.call_every(
            interval, self.metrics_provider.sample
        )

    def quit(self, exit_code: int = 0) -> None:
        logger.info("quit requested (exit code %d)", exit_code)
        self.running = False
        self.exit_code = exit_code

    def close(self) -> None:
        if self._sample_task is not None:
            self._sample_task.cancel()
            self._sample_task = None
        for view in self.views:
            view.destroy()
        self.views = []
        self.goto_dialog.destroy()
        self.help_view.destroy()
        self._router.close()
        for sub in (self._key_subscription, self._resized_subscription):
            if sub is not None:
                sub.cancel()
        self._key_subscription = None
        self._resized_subscription = None
        self.container.detach()


# ── Main loop ──────────────────────────────────────────────────────────────


def _dashboard_loop(
    stdscr: curses.window,
    config: dict[str, Any],
    layouts: list[Layout],
    interval: float,
) -> int:
    init_colors()
    curses.curs_set(0)

    max_y, max_x = stdscr.getmaxyx()
    screen = Screen(max_x, max_y, title="paneldash")

    collector = SystemCollector()
    # Warm-up psutil internal deltas
    collector.warm_up()
    metrics = MetricsProvider(screen, collector.collect, history=int(config["history"]))
    dashboard = Dashboard(
        screen,
        layouts,
        metrics_provider=metrics,
        info_provider=PlatformInfo(),
        settings=config.get("settings", {}),
        global_keys=config.get("global_keys", GLOBAL_KEYS),
    )
    dashboard.start_sampling(interval)

    try:
        while dashboard.running:
            if screen.dirty:
                draw_screen(stdscr, screen)

            deadline = screen.scheduler.next_deadline()
            wait = interval if deadline is None else deadline - time.monotonic()
            stdscr.timeout(max(0, int(wait * 1000)))

            event = read_key(stdscr)
            if event is not None:
                if event.name == "resize":
                    max_y, max_x = stdscr.getmaxyx()
                    stdscr.clear()
                    screen.resize(max_x, max_y)
                else:
                    screen.feed_key(event)
            screen.scheduler.run_due()
    finally:
        dashboard.close()
        metrics.close()

    return dashboard.exit_code or 0


# ── CLI entry point ────────────────────────────────────────────────────────


def _fail(message: str) -> NoReturn:
    print(f"paneldash: {message}", file=sys.stderr)
    raise SystemExit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Interactive terminal dashboard with rotating panel layouts.",
    )
    parser.add_argument(
        "--layouts",
        type=Path,
        default=None,
        metavar="PATH",
        help="TOML file with [[layouts]] tables (default: built-in layouts)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="TYPE.KEY=VALUE",
        help="Override a panel setting, e.g. cpu.warning=70 (repeatable)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between metric samples (default: from config, 1.0)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        metavar="PATH",
        help="Append log records to this file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log at DEBUG level",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    args = parser.parse_args(argv)

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    config = load_config(args.config)
    layouts_path = args.layouts
    if layouts_path is None and config.get("layouts_file"):
        layouts_path = Path(config["layouts_file"]).expanduser()
    interval = float(args.interval if args.interval is not None else config["interval"])
    if interval <= 0:
        _fail("--interval must be positive")

    try:
        config = apply_overrides(config, args.set)
        layouts = load_layouts(layouts_path)
        PanelRegistry.default().validate(layouts)
    except ConfigurationError as e:
        _fail(str(e))

    setup_logging(
        logging.DEBUG if args.debug else logging.INFO,
        args.log_file or config.get("log_file") or None,
    )

    try:
        exit_code = curses.wrapper(_dashboard_loop, config, layouts, interval)
    except KeyboardInterrupt:
        exit_code = 0
    except ConfigurationError as e:
        logger.error("startup failed: %s", e)
        _fail(str(e))
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
