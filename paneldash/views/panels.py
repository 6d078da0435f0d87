"""Built-in metric panels: CPU, memory & disk, top processes.

Each panel is one bordered surface whose painter draws the sample under
the metrics provider's cursor. Thresholds come from the panel settings so
``[settings.cpu] warning = 70`` recolours the bars.
"""

from __future__ import annotations

import curses
import os
from typing import Any

from paneldash.errors import ConfigurationError
from paneldash.render import (
    C_BLUE,
    C_CRITICAL,
    C_DIM,
    C_NORMAL,
    C_TITLE,
    C_WARNING,
    draw_bar,
    draw_sparkline,
    fmt_bytes,
    fmt_rate,
    safe_addstr,
    severity_color,
)
from paneldash.surface import Surface
from paneldash.views.base import ViewNode

_NPROC: int = os.cpu_count() or 1


class MetricsPanel(ViewNode):
    """Shared wiring: one bordered node, repainted on every ``metrics`` event."""

    def __init__(self, **options: Any) -> None:
        if options.get("metrics_provider") is None:
            raise ConfigurationError(f"{type(self).__name__} requires metrics_provider")
        super().__init__(**options)
        cfg = self.layout_config
        node = Surface(
            position=None,
            label=f" {cfg['title']} ",
            border=True,
            style={"border": cfg.get("border_color", "white")},
        )
        node.painter = self._paint
        self.mount(node)
        self.listen_global_keys(node)
        self.subscribe(self.screen, "metrics", self._on_metrics)

    def _on_metrics(self, *_: Any) -> None:
        if self.node is not None:
            self.node.request_render()

    def _title(self, box: Any) -> None:
        if self.metrics_provider.live:
            return
        tag = f" @ {self.metrics_provider.position_label()} "
        _, w = box.getmaxyx()
        safe_addstr(box, 0, max(2, w - len(tag) - 2), tag, curses.color_pair(C_WARNING))

    def _paint(self, box: Any, surface: Surface) -> None:
        data = self.metrics_provider.latest()
        if data is None:
            safe_addstr(box, 1, 2, "waiting for metrics...", curses.color_pair(C_DIM))
            return
        self._title(box)
        self.paint(box, data)

    def paint(self, box: Any, data: Any) -> None:
        raise NotImplementedError


class CpuView(MetricsPanel):
    def default_layout_config(self) -> dict[str, Any]:
        return {"title": "CPU", "border_color": "cyan", "warning": 80.0, "critical": 95.0}

    def paint(self, box: Any, data: Any) -> None:
        h, w = box.getmaxyx()
        warn = float(self.layout_config["warning"])
        crit = float(self.layout_config["critical"])
        row = 1

        color = severity_color(data.cpu_total, warn, crit)
        draw_bar(box, row, 1, w - 3, data.cpu_total, "Total", color)
        row += 1

        # per-core bars capped to the available space
        max_cores = max(0, min(len(data.cpu_per_core), h - 6))
        for i in range(max_cores):
            pct = data.cpu_per_core[i]
            draw_bar(box, row, 1, w - 3, pct, f"#{i}", severity_color(pct, warn, crit))
            row += 1
        if len(data.cpu_per_core) > max_cores:
            safe_addstr(
                box,
                row,
                2,
                f"... +{len(data.cpu_per_core) - max_cores} cores",
                curses.color_pair(C_DIM),
            )
            row += 1

        row = max(row + 1, h - 3)
        load_str = (
            f" Load {data.load_avg[0]:.2f}  {data.load_avg[1]:.2f}  "
            f"{data.load_avg[2]:.2f}  ({_NPROC} cores)"
        )
        safe_addstr(box, row, 1, load_str[: w - 3], curses.color_pair(C_DIM))

        history = self.metrics_provider.history("cpu_total", w - 4)
        if row + 1 < h - 1 and len(history) > 1:
            draw_sparkline(box, row + 1, 2, w - 4, history, 100.0, C_BLUE)


class MemoryView(MetricsPanel):
    def default_layout_config(self) -> dict[str, Any]:
        return {"title": "Memory & Disk", "border_color": "cyan", "warning": 85.0, "critical": 95.0}

    def paint(self, box: Any, data: Any) -> None:
        _, w = box.getmaxyx()
        warn = float(self.layout_config["warning"])
        crit = float(self.layout_config["critical"])
        row = 1
        for label, pct, used, total in (
            ("RAM", data.ram_percent, data.ram_used, data.ram_total),
            ("Swap", data.swap_percent, data.swap_used, data.swap_total),
            ("Disk", data.disk_percent, data.disk_used, data.disk_total),
        ):
            draw_bar(box, row, 1, w - 3, pct, label, severity_color(pct, warn, crit))
            row += 1
            detail = f"       {fmt_bytes(used)} / {fmt_bytes(total)}"
            safe_addstr(box, row, 1, detail[: w - 3], curses.color_pair(C_DIM))
            row += 2

        safe_addstr(box, row, 2, "Read ", curses.color_pair(C_DIM))
        safe_addstr(box, fmt_rate(data.disk_read_rate), curses.color_pair(C_BLUE) | curses.A_BOLD)
        safe_addstr(box, "  Write ", curses.color_pair(C_DIM))
        safe_addstr(box, fmt_rate(data.disk_write_rate), curses.color_pair(C_BLUE) | curses.A_BOLD)
        row += 1
        safe_addstr(box, row, 2, "RX   ", curses.color_pair(C_DIM))
        safe_addstr(box, fmt_rate(data.net_rx_rate), curses.color_pair(C_NORMAL) | curses.A_BOLD)
        safe_addstr(box, "  TX    ", curses.color_pair(C_DIM))
        safe_addstr(box, fmt_rate(data.net_tx_rate), curses.color_pair(C_NORMAL) | curses.A_BOLD)


class ProcessView(MetricsPanel):
    def default_layout_config(self) -> dict[str, Any]:
        return {"title": "Processes", "border_color": "cyan"}

    def paint(self, box: Any, data: Any) -> None:
        h, w = box.getmaxyx()
        row = 1
        hdr = f" {'PID':>7s}  {'CPU%':>6s}  {'MEM%':>6s}  {'MEM':>10s}  NAME"
        safe_addstr(box, row, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)
        row += 1
        safe_addstr(box, row, 1, "─" * min(w - 3, 60), curses.color_pair(C_DIM))
        row += 1

        for p in data.top_procs[: max(0, h - 4)]:
            cpu: float = p.get("cpu_percent", 0)
            mem_pct: float = p.get("memory_percent", 0)
            line = (
                f" {p['pid']:>7d}  {cpu:>5.1f}%  {mem_pct:>5.1f}%"
                f"  {fmt_bytes(p.get('rss', 0)):>10s}  {p['name']}"
            )
            color = C_NORMAL
            if cpu >= 50:
                color = C_CRITICAL
            elif cpu >= 20:
                color = C_WARNING
            safe_addstr(box, row, 1, line[: w - 3], curses.color_pair(color))
            row += 1
