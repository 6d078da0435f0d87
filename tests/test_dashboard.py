"""Tests for the dashboard controller, the panel registry and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from paneldash.config import DEFAULT_LAYOUTS, GLOBAL_KEYS, Layout, build_layouts
from paneldash.dashboard import Dashboard, PanelRegistry, _dashboard_loop, main
from paneldash.errors import ConfigurationError, UnknownPanelTypeError
from paneldash.metrics import DashboardData, MetricsProvider
from paneldash.surface import Screen
from paneldash.views.base import ViewNode
from paneldash.views.panels import CpuView
from paneldash.views.platform import PlatformDetailsView

from conftest import FakeClock, FakeInfo

Press = Callable[..., None]


class BrokenView(ViewNode):
    def __init__(self, **options: object) -> None:
        super().__init__(**options)  # type: ignore[arg-type]
        raise RuntimeError("panel failed")


THREE_LAYOUTS = DEFAULT_LAYOUTS + [
    {"name": "cpu only", "panels": [{"type": "cpu"}]},
]


def _provider(screen: Screen, samples: int = 0) -> MetricsProvider:
    provider = MetricsProvider(screen, MagicMock(return_value=DashboardData()))
    for i in range(samples):
        provider.add_sample(float(i), DashboardData())
    return provider


@pytest.fixture
def layouts() -> list[Layout]:
    return build_layouts(THREE_LAYOUTS)


@pytest.fixture
def make_dashboard(
    screen: Screen, clock: FakeClock, layouts: list[Layout]
) -> Callable[..., Dashboard]:
    def make(**options: object) -> Dashboard:
        options.setdefault("metrics_provider", _provider(screen, 10))
        options.setdefault("info_provider", FakeInfo())
        return Dashboard(screen, layouts, clock=clock, **options)  # type: ignore[arg-type]

    return make


@pytest.fixture
def dashboard(make_dashboard: Callable[..., Dashboard]) -> Dashboard:
    return make_dashboard()


# ── Layouts ────────────────────────────────────────────────────────────────


class TestLayouts:
    def test_first_layout_active(self, screen: Screen, dashboard: Dashboard) -> None:
        assert dashboard.current_layout == 0
        assert [type(v).__name__ for v in dashboard.views] == [
            "CpuView",
            "MemoryView",
            "ProcessView",
        ]
        assert screen.focus_stack == [dashboard.container]

    def test_help_in_front(self, dashboard: Dashboard) -> None:
        assert dashboard.container.children[-1] is dashboard.help_view.node

    def test_activate_same_layout_is_noop(self, dashboard: Dashboard) -> None:
        views = list(dashboard.views)
        dashboard.activate_layout(0)
        assert dashboard.views == views

    def test_roll_right_and_wrap(
        self, clock: FakeClock, dashboard: Dashboard, press: Press
    ) -> None:
        press("right")
        assert dashboard.current_layout == 1
        clock.advance(0.2)
        press("right")
        assert dashboard.current_layout == 2
        clock.advance(0.2)
        press("right")
        assert dashboard.current_layout == 0

    def test_roll_left_wraps_to_last(self, dashboard: Dashboard, press: Press) -> None:
        press("left")
        assert dashboard.current_layout == 2

    def test_roll_is_throttled(
        self, clock: FakeClock, dashboard: Dashboard, press: Press
    ) -> None:
        press("right")
        clock.advance(0.1)
        press("right")
        assert dashboard.current_layout == 1
        clock.advance(0.1)
        press("right")
        assert dashboard.current_layout == 2

    def test_platform_layout_owns_input(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        dashboard.activate_layout(1)
        (view,) = dashboard.views
        assert isinstance(view, PlatformDetailsView)
        assert screen.focused is view.env_box
        zoomed = MagicMock()
        screen.on("zoom_graphs", zoomed)
        press("w")
        zoomed.assert_not_called()
        press("right")
        assert dashboard.current_layout == 2

    def test_switching_layouts_does_not_leak(
        self, screen: Screen, clock: FakeClock, dashboard: Dashboard
    ) -> None:
        resize = screen.listener_count("resize")
        metrics = screen.listener_count("metrics")
        children = len(dashboard.container.children)
        pending = screen.scheduler.pending()
        for _ in range(5):
            dashboard.activate_layout(1)
            dashboard.activate_layout(0)
        assert screen.listener_count("resize") == resize
        assert screen.listener_count("metrics") == metrics
        assert len(dashboard.container.children) == children
        assert screen.scheduler.pending() == pending
        assert screen.focus_stack == [dashboard.container]

    def test_old_views_destroyed(self, screen: Screen, dashboard: Dashboard) -> None:
        old = list(dashboard.views)
        dashboard.activate_layout(1)
        assert all(v.destroyed for v in old)
        screen.resize(100, 30)
        assert all(v.node is None for v in old)

    def test_goto_dialog_stays_in_front_after_resize(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        dashboard.activate_layout(1)
        press("g")
        screen.resize(100, 30)
        assert dashboard.container.children[-1] is dashboard.goto_dialog.form
        assert screen.focused is dashboard.goto_dialog.field

    def test_help_stays_in_front_after_resize(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        dashboard.activate_layout(1)
        press("?")
        assert dashboard.help_view.visible
        screen.resize(100, 30)
        assert dashboard.container.children[-1] is dashboard.help_view.node

    def test_goto_closes_back_to_previous_focus(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        dashboard.activate_layout(1)
        before = list(screen.focus_stack)
        press("g", "escape")
        assert screen.focus_stack == before

    def test_failed_layout_is_rolled_back(
        self, screen: Screen, clock: FakeClock
    ) -> None:
        registry = PanelRegistry.default()
        registry.register("broken", BrokenView)
        layouts = build_layouts(
            [
                {"name": "ok", "panels": [{"type": "cpu"}]},
                {"name": "bad", "panels": [{"type": "platform_details"}, {"type": "broken"}]},
            ]
        )
        dashboard = Dashboard(
            screen,
            layouts,
            metrics_provider=_provider(screen, 1),
            info_provider=FakeInfo(),
            registry=registry,
            clock=clock,
        )
        resize = screen.listener_count("resize")
        with pytest.raises(RuntimeError, match="panel failed"):
            dashboard.activate_layout(1)
        assert dashboard.views == []
        assert dashboard.current_layout is None
        assert screen.focus_stack == [dashboard.container]
        assert screen.listener_count("resize") == resize - 1
        assert screen.scheduler.pending() == 0
        assert sorted(c.name for c in dashboard.container.children) == ["dialog", "help"]
        dashboard.activate_layout(0)
        assert dashboard.current_layout == 0

    def test_settings_merged_per_type(self, make_dashboard: Callable[..., Dashboard]) -> None:
        dashboard = make_dashboard(settings={"cpu": {"title": "Cores", "warning": 50}})
        cpu = dashboard.views[0]
        assert isinstance(cpu, CpuView)
        assert cpu.layout_config["title"] == "Cores"
        assert cpu.layout_config["warning"] == 50
        assert cpu.layout_config["type"] == "cpu"

    def test_no_layouts(self, screen: Screen) -> None:
        with pytest.raises(ConfigurationError):
            Dashboard(screen, [], metrics_provider=_provider(screen))


# ── Keys ───────────────────────────────────────────────────────────────────


class TestKeys:
    @pytest.mark.parametrize(
        ("key", "event", "delta"),
        [
            ("w", "zoom_graphs", 1),
            ("S-w", "zoom_graphs", 1),
            ("s", "zoom_graphs", -1),
            ("S-s", "zoom_graphs", -1),
            ("a", "scroll_graphs", -1),
            ("d", "scroll_graphs", 1),
            ("z", "start_graphs", -1),
            ("S-x", "start_graphs", 1),
        ],
    )
    def test_graph_navigation(
        self, screen: Screen, dashboard: Dashboard, press: Press, key: str, event: str, delta: int
    ) -> None:
        handler = MagicMock()
        screen.on(event, handler)
        press(key)
        handler.assert_called_once_with(delta)

    @pytest.mark.parametrize("key", ["?", "h", "S-h"])
    def test_help_toggle(self, dashboard: Dashboard, press: Press, key: str) -> None:
        press(key)
        assert dashboard.help_view.visible
        press(key)
        assert not dashboard.help_view.visible

    def test_goto_hides_help_and_opens_dialog(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        press("?", "g")
        assert not dashboard.help_view.visible
        assert dashboard.goto_dialog.is_visible()
        assert screen.focused is dashboard.goto_dialog.field

    def test_goto_without_metrics_is_noop(
        self, screen: Screen, make_dashboard: Callable[..., Dashboard], press: Press
    ) -> None:
        dashboard = make_dashboard(metrics_provider=_provider(screen, 0))
        press("g")
        assert not dashboard.goto_dialog.is_visible()
        assert screen.focused is dashboard.container

    def test_goto_moves_metrics_cursor(self, screen: Screen, dashboard: Dashboard, press: Press) -> None:
        press("g", "4", "enter")
        assert dashboard.metrics_provider.cursor == 4
        assert screen.focused is dashboard.container

    @pytest.mark.parametrize("key", ["q", "S-q"])
    def test_quit(self, dashboard: Dashboard, press: Press, key: str) -> None:
        press(key)
        assert not dashboard.running
        assert dashboard.exit_code == 0

    def test_ctrl_c_quits_from_dialog_field(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        press("g")
        assert screen.focused is dashboard.goto_dialog.field
        press("C-c")
        assert not dashboard.running
        assert dashboard.goto_dialog.text == ""

    def test_dialog_field_swallows_global_keys(self, dashboard: Dashboard, press: Press) -> None:
        press("g", "q", "right")
        assert dashboard.running
        assert dashboard.current_layout == 0
        assert dashboard.goto_dialog.text == "q"

    def test_escape_hides_overlays_first(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        reset = MagicMock()
        screen.on("reset_graphs", reset)
        press("?", "escape")
        assert not dashboard.help_view.visible
        reset.assert_not_called()

    def test_escape_resets_graphs_and_layout(
        self, screen: Screen, dashboard: Dashboard, press: Press
    ) -> None:
        reset = MagicMock()
        screen.on("reset_graphs", reset)
        dashboard.metrics_provider.start(-1)
        dashboard.activate_layout(2)
        press("escape")
        reset.assert_called_once_with()
        assert dashboard.current_layout == 0
        assert dashboard.metrics_provider.live

    def test_unhandled_global_keys_reported(
        self, make_dashboard: Callable[..., Dashboard], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="paneldash"):
            dashboard = make_dashboard(global_keys=[*GLOBAL_KEYS, "k", "S-k"])
        assert dashboard.unhandled_global_keys() == ["k", "S-k"]
        assert "k, S-k" in caplog.text

    def test_default_keys_all_handled(self, dashboard: Dashboard) -> None:
        assert dashboard.unhandled_global_keys() == []

    def test_unhandled_key_bubbles_harmlessly(
        self, screen: Screen, make_dashboard: Callable[..., Dashboard], press: Press
    ) -> None:
        dashboard = make_dashboard(global_keys=[*GLOBAL_KEYS, "k"])
        seen = MagicMock()
        screen.on("key", seen)
        press("k")
        seen.assert_called_once()
        assert dashboard.running


# ── Lifecycle ──────────────────────────────────────────────────────────────


class TestLifecycle:
    def test_sampling_task(self, screen: Screen, clock: FakeClock, dashboard: Dashboard) -> None:
        before = len(dashboard.metrics_provider)
        dashboard.start_sampling(2.0)
        assert len(dashboard.metrics_provider) == before + 1
        clock.advance(2.0)
        screen.scheduler.run_due()
        assert len(dashboard.metrics_provider) == before + 2

    def test_close_releases_everything(self, screen: Screen, dashboard: Dashboard) -> None:
        dashboard.start_sampling(1.0)
        dashboard.activate_layout(1)
        dashboard.close()
        assert screen.children == []
        assert screen.listener_count("resize") == 0
        assert screen.listener_count("resized") == 0
        assert screen.listener_count("key") == 0
        assert screen.scheduler.pending() == 0
        assert screen.focus_stack == []


# ── Registry ───────────────────────────────────────────────────────────────


_EXTENSION = '''
from paneldash.surface import Surface


def build_view(base):
    class CustomView(base):
        def __init__(self, **options):
            super().__init__(**options)
            self.mount(Surface(position=None, label=" custom "))

    return CustomView
'''


class TestPanelRegistry:
    def test_builtin_types(self) -> None:
        assert PanelRegistry.default().types == [
            "cpu",
            "memory",
            "processes",
            "platform_details",
        ]

    def test_unknown_type(self) -> None:
        layouts = build_layouts([{"name": "x", "panels": [{"type": "bogus"}]}])
        with pytest.raises(UnknownPanelTypeError, match="bogus") as info:
            PanelRegistry.default().validate(layouts)
        assert info.value.name == "bogus"

    def test_unknown_type_rejected_at_construction(self, screen: Screen) -> None:
        layouts = build_layouts([{"name": "x", "panels": [{"type": "bogus"}]}])
        with pytest.raises(UnknownPanelTypeError):
            Dashboard(screen, layouts, metrics_provider=_provider(screen))

    def test_extension_module(
        self, screen: Screen, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "paneldash_ext_panel.py").write_text(_EXTENSION)
        monkeypatch.syspath_prepend(str(tmp_path))
        layouts = build_layouts(
            [{"name": "ext", "panels": [{"module": "paneldash_ext_panel", "width": 3}]}]
        )
        dashboard = Dashboard(screen, layouts, metrics_provider=_provider(screen))
        (view,) = dashboard.views
        assert type(view).__name__ == "CustomView"
        assert view.node is not None and view.node.label == " custom "
        assert view.layout_config["width"] == 3

    def test_missing_module(self) -> None:
        with pytest.raises(ConfigurationError, match="cannot import"):
            PanelRegistry().load_module("paneldash_no_such_panel_module")

    def test_module_without_factory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "paneldash_empty_panel.py").write_text("VALUE = 1\n")
        monkeypatch.syspath_prepend(str(tmp_path))
        with pytest.raises(ConfigurationError, match="build_view"):
            PanelRegistry().load_module("paneldash_empty_panel")

    def test_register_custom_type(self, screen: Screen) -> None:
        registry = PanelRegistry()
        registry.register("graph", CpuView)
        layouts = build_layouts([{"name": "x", "panels": [{"type": "graph"}]}])
        dashboard = Dashboard(
            screen, layouts, metrics_provider=_provider(screen), registry=registry
        )
        assert isinstance(dashboard.views[0], CpuView)


# ── Main loop ──────────────────────────────────────────────────────────────


def test_dashboard_loop_quits_on_q() -> None:
    stdscr = MagicMock()
    stdscr.getmaxyx.return_value = (24, 80)
    stdscr.getch.side_effect = [ord("q")]
    config = {"history": 10, "settings": {}, "global_keys": list(GLOBAL_KEYS)}
    with (
        patch("paneldash.dashboard.init_colors"),
        patch("paneldash.dashboard.curses") as mock_curses,
        patch("paneldash.dashboard.draw_screen") as draw,
        patch("paneldash.dashboard.SystemCollector") as collector_cls,
    ):
        collector_cls.return_value.collect.return_value = DashboardData()
        code = _dashboard_loop(stdscr, config, build_layouts(DEFAULT_LAYOUTS), 1.0)
    assert code == 0
    mock_curses.curs_set.assert_called_once_with(0)
    draw.assert_called()


# ── CLI ────────────────────────────────────────────────────────────────────


@pytest.fixture
def empty_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text("")
    return path


def test_main_dump_config(capsys: pytest.CaptureFixture[str]) -> None:
    main(["--dump-config"])
    assert capsys.readouterr().out.startswith("# paneldash configuration")


def test_main_bad_layouts(
    tmp_path: Path, empty_config: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    layouts = tmp_path / "layouts.toml"
    layouts.write_text('[[layouts]]\nname = "x"\n[[layouts.panels]]\ntype = "bogus"\n')
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(empty_config), "--layouts", str(layouts)])
    assert exc.value.code == 1
    assert "paneldash: unknown panel type: 'bogus'" in capsys.readouterr().err


def test_main_bad_override(empty_config: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(empty_config), "--set", "nodot=1"])
    assert exc.value.code == 1
    assert "TYPE.KEY=VALUE" in capsys.readouterr().err


def test_main_rejects_non_positive_interval(empty_config: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(empty_config), "--interval", "0"])
    assert exc.value.code == 1


@patch("paneldash.dashboard.setup_logging")
@patch("paneldash.dashboard.curses.wrapper", return_value=0)
def test_main_runs_loop(
    mock_wrapper: MagicMock, mock_logging: MagicMock, empty_config: Path
) -> None:
    with pytest.raises(SystemExit) as exc:
        main(
            [
                "--config",
                str(empty_config),
                "--set",
                "cpu.warning=70",
                "--interval",
                "2",
                "--debug",
            ]
        )
    assert exc.value.code == 0
    loop, config, layouts, interval = mock_wrapper.call_args.args
    assert loop is _dashboard_loop
    assert config["settings"]["cpu"]["warning"] == 70
    assert [layout.name for layout in layouts] == ["system", "platform"]
    assert interval == 2.0
    mock_logging.assert_called_once_with(logging.DEBUG, None)
