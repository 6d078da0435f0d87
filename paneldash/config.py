"""Configuration loading for paneldash.

Loads settings and layouts from TOML files with sensible defaults.
Search order: explicit --config path → ~/.config/paneldash/config.toml → defaults only.
"""

from __future__ import annotations

import copy
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from paneldash.errors import ConfigurationError
from paneldash.layout import LayoutRule
from paneldash.views.base import LayoutEntry

GLOBAL_KEYS: tuple[str, ...] = (
    "left",
    "right",
    "?",
    "h",
    "S-h",
    "g",
    "S-g",
    "w",
    "S-w",
    "s",
    "S-s",
    "a",
    "S-a",
    "d",
    "S-d",
    "z",
    "S-z",
    "x",
    "S-x",
    "q",
    "S-q",
    "escape",
)

DEFAULT_CONFIG: dict[str, Any] = {
    "interval": 1.0,
    "history": 3600,
    "layouts_file": "",
    "log_file": "",
    "global_keys": list(GLOBAL_KEYS),
    "settings": {
        "cpu": {"warning": 80.0, "critical": 95.0},
        "memory": {"warning": 85.0, "critical": 95.0},
        "processes": {},
        "platform_details": {"refresh": 1.0},
    },
}

DEFAULT_LAYOUTS: list[dict[str, Any]] = [
    {
        "name": "system",
        "panels": [
            {"type": "cpu", "position": {"width": "50%", "height": "60%"}},
            {
                "type": "memory",
                "position": {"left": "50%", "width": "50%", "height": "60%"},
            },
            {"type": "processes", "position": {"top": "60%", "height": "40%"}},
        ],
    },
    {
        "name": "platform",
        "panels": [{"type": "platform_details"}],
    },
]

_DEFAULT_PATH = Path.home() / ".config" / "paneldash" / "config.toml"


@dataclass
class Layout:
    name: str
    entries: list[LayoutEntry] = field(default_factory=lambda: list[LayoutEntry]())


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively; neither input is modified."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        print(f"paneldash: config file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        print(f"paneldash: invalid TOML in {path}: {e}", file=sys.stderr)
        raise SystemExit(1) from e


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/paneldash/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        return _deep_merge(DEFAULT_CONFIG, _read_toml(path))

    # Try default location silently
    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            return _deep_merge(DEFAULT_CONFIG, user_config)
        except tomllib.TOMLDecodeError:
            print(
                f"paneldash: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return copy.deepcopy(DEFAULT_CONFIG)


# ── Overrides ──────────────────────────────────────────────────────────────


def parse_override(text: str) -> tuple[str, str, Any]:
    """Split ``type.key=value``; the value is read as TOML, else kept as text."""
    name, sep, raw = text.partition("=")
    panel_type, dot, key = name.strip().partition(".")
    if not sep or not dot or not panel_type or not key:
        raise ConfigurationError(f"override must look like TYPE.KEY=VALUE: {text!r}")
    raw = raw.strip()
    try:
        value = tomllib.loads(f"v = {raw}")["v"]
    except tomllib.TOMLDecodeError:
        value = raw
    return panel_type, key.strip(), value


def apply_overrides(config: dict[str, Any], overrides: list[str]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for text in overrides:
        panel_type, key, value = parse_override(text)
        patch.setdefault(panel_type, {})[key] = value
    return _deep_merge(config, {"settings": patch})


# ── Layouts ────────────────────────────────────────────────────────────────


def _entry(panel: Any, where: str) -> LayoutEntry:
    if not isinstance(panel, dict):
        raise ConfigurationError(f"{where}: panel must be a table")
    view = {k: v for k, v in panel.items() if k != "position"}
    if not view.get("type") and not view.get("module"):
        raise ConfigurationError(f"{where}: panel needs a type or a module")
    position = panel.get("position", {})
    if not isinstance(position, dict):
        raise ConfigurationError(f"{where}: position must be a table")
    try:
        rule = LayoutRule.from_mapping(position)
    except ConfigurationError as e:
        raise ConfigurationError(f"{where}: {e}") from e
    return LayoutEntry(get_position=rule, view=view)


def build_layouts(raw: Any) -> list[Layout]:
    """Turn ``[[layouts]]`` tables into `Layout` objects."""
    if not isinstance(raw, list) or not raw:
        raise ConfigurationError("at least one layout is required")
    layouts: list[Layout] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigurationError(f"layout {i}: must be a table")
        name = str(item.get("name") or f"layout {i}")
        panels = item.get("panels", [])
        if not isinstance(panels, list):
            raise ConfigurationError(f"layout {name!r}: panels must be an array")
        layouts.append(
            Layout(
                name=name,
                entries=[
                    _entry(panel, f"layout {name!r} panel {j}")
                    for j, panel in enumerate(panels)
                ],
            )
        )
    return layouts


def load_layouts(path: Path | None = None) -> list[Layout]:
    if path is None:
        return build_layouts(DEFAULT_LAYOUTS)
    return build_layouts(_read_toml(path).get("layouts"))


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    keys = ", ".join(f'"{k}"' for k in DEFAULT_CONFIG["global_keys"])
    lines = [
        "# paneldash configuration",
        "# Place this file at ~/.config/paneldash/config.toml",
        "",
        f"interval = {DEFAULT_CONFIG['interval']}",
        f"history = {DEFAULT_CONFIG['history']}",
        f'layouts_file = "{DEFAULT_CONFIG["layouts_file"]}"',
        f'log_file = "{DEFAULT_CONFIG["log_file"]}"',
        f"global_keys = [{keys}]",
        "",
    ]

    # Per-panel settings
    for panel_type, settings in DEFAULT_CONFIG["settings"].items():
        lines.append(f"[settings.{panel_type}]")
        for key, value in settings.items():
            lines.append(f"{key} = {value}")
        lines.append("")

    return "\n".join(lines) + "\n"
