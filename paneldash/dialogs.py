"""Modal single-field input dialogs.

`InputDialog` is the generic controller: it owns the surfaces, the focus
hand-off, the shadow copy of the field text and the error timer. What a
dialog *means* comes from its strategy: the instructions it shows, how it
validates the text and whether it may open at all.

State machine::

    HIDDEN --show--> VISIBLE --submit fails--> SHOWING_ERROR
    SHOWING_ERROR --3 s elapse / any key but enter--> VISIBLE
    VISIBLE | SHOWING_ERROR --submit ok / cancel--> HIDDEN
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Protocol

from paneldash.errors import ValidationError
from paneldash.events import ScheduledTask
from paneldash.keys import KeyEvent
from paneldash.layout import LayoutRule
from paneldash.surface import Button, Surface, TextField
from paneldash.views.base import LayoutEntry, ViewNode

logger = logging.getLogger(__name__)

ERROR_DISPLAY_SECONDS = 3.0
DEFAULT_WIDTH = 64
DEFAULT_HEIGHT = 12

_CONTROL_CHARS = str.maketrans("", "", "\t\r\n\v\f\0\b")
_NON_EDITING_KEYS = frozenset({"delete", "escape", "tab"})
_SUBMIT_KEYS = frozenset({"enter"})


class DialogState(enum.Enum):
    HIDDEN = "hidden"
    VISIBLE = "visible"
    SHOWING_ERROR = "showing_error"


class ModalDialog(Protocol):
    def show(self) -> None: ...

    def hide(self) -> None: ...

    def toggle(self) -> None: ...

    def validate(self, text: str) -> None: ...

    def get_instructions_label(self) -> str: ...


class DialogStrategy(Protocol):
    def instructions(self) -> str: ...

    def validate(self, text: str) -> None: ...

    def can_show(self) -> bool: ...


# ── Strategies ─────────────────────────────────────────────────────────────


class FilterEnvStrategy:
    """Free text; every value is acceptable."""

    def instructions(self) -> str:
        return "Enter text to filter env variables (empty for all)"

    def validate(self, text: str) -> None:
        return None

    def can_show(self) -> bool:
        return True


class GotoTimeStrategy:
    """Parse a time label with the metrics provider and jump to it."""

    def __init__(self, metrics_provider: Any) -> None:
        self.metrics_provider = metrics_provider

    def instructions(self) -> str:
        time_range = self.metrics_provider.get_available_time_range()
        if time_range is None:
            return "No metrics recorded yet"
        return (
            f"Enter a time value between {time_range.min_time.label}"
            f" and {time_range.max_time.label}"
        )

    def validate(self, text: str) -> None:
        value = self.metrics_provider.validate_time_label(text)
        self.metrics_provider.goto_time_value(value)

    def can_show(self) -> bool:
        return self.metrics_provider.get_available_time_range() is not None


# ── Controller ─────────────────────────────────────────────────────────────


class InputDialog(ViewNode):
    """Centered form with instructions, one text field and Accept/Cancel.

    Events: ``text_changed(ch, key, text)`` on every field keystroke,
    ``validated(text)`` on a successful submit, ``show`` and ``hide``.
    """

    def __init__(
        self,
        *,
        parent: Surface | None,
        strategy: DialogStrategy,
        label: str = "",
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        layout_config: LayoutEntry | None = None,
        **options: Any,
    ) -> None:
        if layout_config is None:
            layout_config = LayoutEntry(
                get_position=LayoutRule.of(
                    top="center", left="center", width=width, height=height
                )
            )
        super().__init__(parent=parent, layout_config=layout_config, **options)
        self.strategy = strategy
        self.state = DialogState.HIDDEN
        self.text = ""
        self._error_task: ScheduledTask | None = None
        self._build(label)
        # the layout's own views remount during ``resize``
        self.subscribe(self.screen, "resized", self._keep_in_front)

    def _build(self, label: str) -> None:
        self.form = Surface(
            position=None,
            label=label,
            border=True,
            padding=1,
            hidden=True,
            style={"border": "white"},
            name="dialog",
        )
        self.instructions_label = Surface(
            position=LayoutRule.of(top=1, height=1),
            content=self.get_instructions_label(),
            style={"align": "center"},
        )
        self.field = TextField(
            position=LayoutRule.of(top=3, height=1),
            style={"underline": True, "focus": "yellow"},
            name="text",
        )
        self.error_text = Surface(
            position=LayoutRule.of(top=5, height=1),
            hidden=True,
            style={"fg": "red", "align": "center"},
        )
        self.accept_button = Button(
            position=LayoutRule.of(top="100%-3", height=3, width="half"),
            content="Accept",
            style={"fg": "green", "border": "green", "focus": "green", "align": "center"},
            name="accept",
        )
        self.cancel_button = Button(
            position=LayoutRule.of(top="100%-3", left="50%", height=3, width="half"),
            content="Cancel",
            style={"fg": "red", "border": "red", "focus": "red", "align": "center"},
            name="cancel",
        )
        self.mount(self.form)
        for child in (
            self.instructions_label,
            self.field,
            self.error_text,
            self.accept_button,
            self.cancel_button,
        ):
            self.form.append(child)

        self.field.on("keypress", self._on_field_keypress)
        self.field.key("enter", lambda event: self.submit())
        self.field.key("escape", lambda event: self.cancel())
        self.field.key("tab", lambda event: self.accept_button.focus())
        self.accept_button.key("escape", lambda event: self.cancel())
        self.accept_button.key("tab", lambda event: self.cancel_button.focus())
        self.accept_button.key("S-tab", lambda event: self.field.focus())
        self.accept_button.on("press", self.submit)
        self.cancel_button.key("escape", lambda event: self.cancel())
        self.cancel_button.key("tab", lambda event: self.field.focus())
        self.cancel_button.key("S-tab", lambda event: self.accept_button.focus())
        self.cancel_button.on("press", self.cancel)

    # ── ModalDialog ────────────────────────────────────────────────────────

    def get_instructions_label(self) -> str:
        return self.strategy.instructions()

    def refresh_instructions(self) -> None:
        self.instructions_label.set_content(self.get_instructions_label())

    def is_visible(self) -> bool:
        return self.state is not DialogState.HIDDEN

    def show(self) -> None:
        if self.is_visible() or self.node is None:
            return
        self.screen.save_focus()
        self.form.set_front()
        self.form.show()
        self.set_value("")
        self._clear_error()
        self.refresh_instructions()
        self.field.focus()
        self.state = DialogState.VISIBLE
        self.emit("show")

    def hide(self) -> None:
        if not self.is_visible():
            return
        self._clear_error()
        self.form.hide()
        self.state = DialogState.HIDDEN
        self.screen.drop_focus(self.field, self.accept_button, self.cancel_button)
        self.screen.restore_focus()
        self.emit("hide")

    def toggle(self) -> None:
        if self.is_visible():
            self.hide()
        elif self.strategy.can_show():
            self.show()

    def validate(self, text: str) -> None:
        self.strategy.validate(text)
        self.emit("validated", text)

    def submit(self) -> bool:
        if not self.is_visible():
            return False
        self._cancel_error_task()
        try:
            self.validate(self.text)
        except ValidationError as e:
            logger.info("dialog %r rejected %r: %s", self.form.label, self.text, e)
            self.error_text.set_content(str(e))
            self.error_text.show()
            self.field.focus()
            self.state = DialogState.SHOWING_ERROR
            self._error_task = self.screen.scheduler.call_later(
                ERROR_DISPLAY_SECONDS, self._clear_error
            )
            return False
        self.hide()
        return True

    def cancel(self) -> None:
        self.hide()

    def set_value(self, text: str) -> None:
        self.text = text
        self.field.set_value(text)

    def destroy(self) -> None:
        self._cancel_error_task()
        self.state = DialogState.HIDDEN
        super().destroy()

    # ── internals ──────────────────────────────────────────────────────────

    def _on_field_keypress(self, event: KeyEvent) -> None:
        if event.name == "backspace":
            self.text = self.text[:-1]
        elif not (event.name in _NON_EDITING_KEYS or event.ctrl or event.meta):
            self.text += (event.ch or "").translate(_CONTROL_CHARS)
        submitting = event.name in _SUBMIT_KEYS
        if self.state is DialogState.SHOWING_ERROR and not submitting:
            self._clear_error()
        self.emit("text_changed", event.ch, event, self.text)

    def _keep_in_front(self) -> None:
        if self.is_visible():
            self.form.set_front()

    def _cancel_error_task(self) -> None:
        if self._error_task is not None:
            self._error_task.cancel()
            self._error_task = None

    def _clear_error(self) -> None:
        self._cancel_error_task()
        self.error_text.hide()
        if self.state is DialogState.SHOWING_ERROR:
            self.state = DialogState.VISIBLE


def create_filter_env_dialog(parent: Surface, **options: Any) -> InputDialog:
    return InputDialog(
        parent=parent, strategy=FilterEnvStrategy(), label=" Filter env ", **options
    )


def create_goto_time_dialog(parent: Surface, metrics_provider: Any) -> InputDialog:
    dialog = InputDialog(
        parent=parent,
        strategy=GotoTimeStrategy(metrics_provider),
        label=" Go to time ",
        metrics_provider=metrics_provider,
    )

    def on_metrics(*_: Any) -> None:
        # the available range grows with every sample
        if dialog.is_visible():
            dialog.refresh_instructions()

    dialog.subscribe(dialog.screen, "metrics", on_metrics)
    return dialog
