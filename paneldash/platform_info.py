"""Point-in-time facts about the host, the user and this process.

Each function returns a fresh list of `DetailRow`s; callers never mutate
them, they just ask again on the next refresh.
"""

from __future__ import annotations

import getpass
import os
import platform
import sys
import time
from collections.abc import Mapping

import psutil

from paneldash.highlight import DetailRow
from paneldash.render import fmt_bytes


def fmt_duration(seconds: float) -> str:
    total = int(seconds)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days:
        return f"{days}d {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def process_details() -> list[DetailRow]:
    proc = psutil.Process()
    return [
        DetailRow("Python", platform.python_version()),
        DetailRow("Implementation", platform.python_implementation()),
        DetailRow("PID", str(proc.pid)),
        DetailRow("Uptime", fmt_duration(time.time() - proc.create_time())),
    ]


def system_details() -> list[DetailRow]:
    uname = platform.uname()
    return [
        DetailRow("Architecture", uname.machine),
        DetailRow(
            "Endianness",
            "Big Endian" if sys.byteorder == "big" else "Little Endian",
        ),
        DetailRow("Host Name", uname.node),
        DetailRow("Total Memory", fmt_bytes(psutil.virtual_memory().total)),
        DetailRow("Platform", sys.platform),
        DetailRow("Release", uname.release),
        DetailRow("Type", uname.system),
        DetailRow("Uptime", fmt_duration(time.time() - psutil.boot_time())),
    ]


def user_details() -> list[DetailRow]:
    rows = [
        DetailRow("User Name", getpass.getuser()),
        DetailRow("Home", os.path.expanduser("~")),
    ]
    if hasattr(os, "getuid"):
        rows.append(DetailRow("User ID", str(os.getuid())))
        rows.append(DetailRow("Group ID", str(os.getgid())))
    rows.append(DetailRow("Shell", os.environ.get("SHELL", "")))
    return rows


def cpu_details() -> list[DetailRow]:
    model = platform.processor() or platform.machine()
    freqs = psutil.cpu_freq(percpu=True) or []
    count = psutil.cpu_count() or 1
    rows: list[DetailRow] = []
    for i in range(count):
        speed = f" {freqs[i].current:.0f} MHz" if i < len(freqs) else ""
        rows.append(DetailRow(f"[{i}]", f"{model}{speed}"))
    return rows


def env_details(environ: Mapping[str, str] | None = None) -> list[DetailRow]:
    env = os.environ if environ is None else environ
    return [DetailRow(key, value) for key, value in env.items()]


class PlatformInfo:
    """Bundles the functions above so panels can take a substitute."""

    process_details = staticmethod(process_details)
    system_details = staticmethod(system_details)
    user_details = staticmethod(user_details)
    cpu_details = staticmethod(cpu_details)
    env_details = staticmethod(env_details)
