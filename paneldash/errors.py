"""Exception types shared across paneldash."""

from __future__ import annotations


class PaneldashError(Exception):
    """Base class for every error raised by paneldash."""


class ConfigurationError(PaneldashError):
    """A view, layout or setting is unusable and construction must stop."""


class UnknownPanelTypeError(ConfigurationError):
    """A layout entry names a panel type nobody registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown panel type: {name!r}")
        self.name = name


class ValidationError(PaneldashError):
    """User input was rejected. The message is shown to the operator as-is."""
