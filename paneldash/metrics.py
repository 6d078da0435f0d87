"""Metrics collection and the sampled time-series the panels read from.

`SystemCollector` takes one psutil snapshot per call. `MetricsProvider`
keeps a bounded history of snapshots keyed by elapsed time since the first
sample, and a read cursor: while *live* the cursor follows the newest
sample, otherwise it stays where "go to time", scrolling or playback put it.
"""

from __future__ import annotations

import logging
import os
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import psutil

from paneldash.errors import ValidationError
from paneldash.events import Emitter, Subscription

logger = logging.getLogger(__name__)

ZOOM_LEVELS: tuple[int, ...] = (1, 2, 5, 10, 30, 60)

# ── Data types ─────────────────────────────────────────────────────────────


@dataclass
class DashboardData:
    """Snapshot of all metrics for one sample."""

    cpu_total: float = 0.0
    cpu_per_core: list[float] = field(default_factory=lambda: list[float]())
    iowait: float = 0.0
    ram_percent: float = 0.0
    ram_used: int = 0
    ram_total: int = 0
    swap_percent: float = 0.0
    swap_used: int = 0
    swap_total: int = 0
    disk_percent: float = 0.0
    disk_used: int = 0
    disk_total: int = 0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    disk_read_rate: float = 0.0
    disk_write_rate: float = 0.0
    net_rx_rate: float = 0.0
    net_tx_rate: float = 0.0
    top_procs: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )


@dataclass(frozen=True)
class TimePoint:
    value: float
    label: str


@dataclass(frozen=True)
class TimeRange:
    min_time: TimePoint
    max_time: TimePoint


# ── Time labels ────────────────────────────────────────────────────────────


def format_time_label(seconds: float) -> str:
    """Elapsed seconds as ``M:SS`` or ``H:MM:SS``."""
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_time_label(text: str) -> float:
    """Inverse of `format_time_label`; bare numbers are seconds."""
    parts = text.strip().split(":")
    if not parts or len(parts) > 3 or any(not p.strip() for p in parts):
        raise ValidationError(f"Invalid time value: {text.strip()!r}")
    try:
        numbers = [float(p) for p in parts]
    except ValueError:
        raise ValidationError(f"Invalid time value: {text.strip()!r}") from None
    if any(n < 0 for n in numbers) or any(n >= 60 for n in numbers[1:]):
        raise ValidationError(f"Invalid time value: {text.strip()!r}")
    value = 0.0
    for n in numbers:
        value = value * 60 + n
    return value


# ── Collection ─────────────────────────────────────────────────────────────


def _get_top_processes(n: int = 12) -> list[dict[str, Any]]:
    procs: list[dict[str, Any]] = []
    for proc in psutil.process_iter(
        ["pid", "name", "cpu_percent", "memory_percent", "memory_info"],
    ):
        try:
            info: dict[str, Any] = proc.info
            cpu: float = info.get("cpu_percent") or 0.0
            if cpu > 0:
                mem_info = info.get("memory_info")
                procs.append(
                    {
                        "pid": info.get("pid", 0),
                        "name": info.get("name") or "?",
                        "cpu_percent": cpu,
                        "memory_percent": info.get("memory_percent") or 0.0,
                        "rss": mem_info.rss if mem_info else 0,
                    }
                )
        except (psutil.NoSuchProcess, psutil.AccessDenied, AttributeError):
            continue
    procs.sort(key=lambda p: p["cpu_percent"], reverse=True)
    return procs[:n]


class SystemCollector:
    """Takes psutil snapshots; I/O rates are deltas against the previous call."""

    def __init__(self, disk_path: str = "/", top_n: int = 12) -> None:
        self.disk_path = disk_path
        self.top_n = top_n
        self._prev: tuple[float, int, int, int, int] | None = None

    def warm_up(self) -> None:
        # psutil reports 0% on the first call of each counter
        psutil.cpu_percent(interval=None, percpu=True)
        psutil.cpu_times_percent(interval=None)

    def collect(self) -> DashboardData:
        data = DashboardData()
        now = time.monotonic()

        cpu_times = psutil.cpu_times_percent(interval=None)
        data.cpu_total = 100.0 - cpu_times.idle
        data.iowait = cpu_times.iowait if hasattr(cpu_times, "iowait") else 0.0
        data.cpu_per_core = psutil.cpu_percent(interval=None, percpu=True)

        ram = psutil.virtual_memory()
        data.ram_percent = ram.percent
        data.ram_used = ram.used
        data.ram_total = ram.total
        swap = psutil.swap_memory()
        data.swap_percent = swap.percent
        data.swap_used = swap.used
        data.swap_total = swap.total

        disk = psutil.disk_usage(self.disk_path)
        data.disk_percent = disk.percent
        data.disk_used = disk.used
        data.disk_total = disk.total

        la = os.getloadavg()
        data.load_avg = (la[0], la[1], la[2])

        disk_io = psutil.disk_io_counters()
        net_io = psutil.net_io_counters()
        read_b = disk_io.read_bytes if disk_io is not None else 0
        write_b = disk_io.write_bytes if disk_io is not None else 0
        recv_b = net_io.bytes_recv if net_io is not None else 0
        sent_b = net_io.bytes_sent if net_io is not None else 0
        if self._prev is not None and now > self._prev[0]:
            dt = now - self._prev[0]
            if disk_io is not None:
                data.disk_read_rate = max(0.0, (read_b - self._prev[1]) / dt)
                data.disk_write_rate = max(0.0, (write_b - self._prev[2]) / dt)
            if net_io is not None:
                data.net_rx_rate = max(0.0, (recv_b - self._prev[3]) / dt)
                data.net_tx_rate = max(0.0, (sent_b - self._prev[4]) / dt)
        self._prev = (now, read_b, write_b, recv_b, sent_b)

        data.top_procs = _get_top_processes(self.top_n)
        return data


# ── Provider ───────────────────────────────────────────────────────────────


class MetricsProvider:
    """Sampled history plus the read cursor driven by zoom/scroll/goto keys.

    Listens for ``zoom_graphs``, ``scroll_graphs``, ``start_graphs`` and
    ``reset_graphs`` on *bus* and emits ``metrics`` there after each change.
    """

    def __init__(
        self,
        bus: Emitter,
        collect: Callable[[], DashboardData] | None = None,
        *,
        history: int = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bus = bus
        self._collect = collect or SystemCollector().collect
        self._clock = clock
        self._samples: deque[tuple[float, DashboardData]] = deque(maxlen=history)
        self._start: float | None = None
        self.cursor: int | None = None
        self.zoom_index = 0
        self._subscriptions: list[Subscription] = [
            bus.on("zoom_graphs", self.zoom),
            bus.on("scroll_graphs", self.scroll),
            bus.on("start_graphs", self.start),
            bus.on("reset_graphs", self.reset),
        ]

    @property
    def live(self) -> bool:
        return self.cursor is None

    @property
    def bucket(self) -> int:
        return ZOOM_LEVELS[self.zoom_index]

    def __len__(self) -> int:
        return len(self._samples)

    def sample(self) -> DashboardData:
        now = self._clock()
        if self._start is None:
            self._start = now
        data = self._collect()
        full = len(self._samples) == self._samples.maxlen
        self._samples.append((now - self._start, data))
        if full and self.cursor is not None:
            self.cursor = max(0, self.cursor - 1)
        self.bus.emit("metrics", self.latest())
        return data

    def add_sample(self, elapsed: float, data: DashboardData) -> None:
        """Record a sample taken elsewhere (replays, tests)."""
        self._samples.append((elapsed, data))

    def _index(self) -> int:
        return len(self._samples) - 1 if self.cursor is None else self.cursor

    def latest(self) -> DashboardData | None:
        if not self._samples:
            return None
        return self._samples[self._index()][1]

    def position_label(self) -> str:
        if not self._samples:
            return ""
        return format_time_label(self._samples[self._index()][0])

    def history(self, name: str, width: int) -> list[float]:
        """Up to *width* bucket averages of one field, ending at the cursor."""
        if not self._samples or width <= 0:
            return []
        end = self._index() + 1
        bucket = self.bucket
        begin = max(0, end - width * bucket)
        values = [float(getattr(d, name)) for _, d in list(self._samples)[begin:end]]
        # align buckets to the cursor so the newest bucket is always complete
        offset = len(values) % bucket
        out: list[float] = []
        if offset:
            out.append(sum(values[:offset]) / offset)
        for i in range(offset, len(values), bucket):
            chunk = values[i : i + bucket]
            out.append(sum(chunk) / len(chunk))
        return out[-width:]

    # ── time navigation ────────────────────────────────────────────────────

    def get_available_time_range(self) -> TimeRange | None:
        if not self._samples:
            return None
        first = self._samples[0][0]
        last = self._samples[-1][0]
        return TimeRange(
            TimePoint(first, format_time_label(first)),
            TimePoint(last, format_time_label(last)),
        )

    def validate_time_label(self, text: str) -> float:
        time_range = self.get_available_time_range()
        if time_range is None:
            raise ValidationError("No metrics recorded yet")
        value = parse_time_label(text)
        if not time_range.min_time.value <= value <= time_range.max_time.value:
            raise ValidationError(
                f"Value must be between {time_range.min_time.label}"
                f" and {time_range.max_time.label}"
            )
        return value

    def goto_time_value(self, value: float) -> None:
        index = 0
        for i, (elapsed, _) in enumerate(self._samples):
            if elapsed > value:
                break
            index = i
        self.cursor = None if index == len(self._samples) - 1 else index
        logger.debug("goto %s -> sample %d", format_time_label(value), index)
        self._changed()

    def zoom(self, delta: int) -> None:
        self.zoom_index = max(0, min(self.zoom_index + delta, len(ZOOM_LEVELS) - 1))
        self._changed()

    def scroll(self, delta: int) -> None:
        if not self._samples:
            return
        index = self._index() + delta * self.bucket
        last = len(self._samples) - 1
        self.cursor = None if index >= last else max(0, index)
        self._changed()

    def start(self, delta: int) -> None:
        if not self._samples:
            return
        self.cursor = 0 if delta < 0 else None
        self._changed()

    def reset(self) -> None:
        self.cursor = None
        self.zoom_index = 0
        self._changed()

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()

    def _changed(self) -> None:
        self.bus.emit("metrics", self.latest())
