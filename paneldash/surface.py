"""In-memory render tree that the curses painter draws.

A `Surface` is a rectangle with optional border, label and text content.
Surfaces nest; attaching a subtree to a `Screen` fires ``attach`` on every
node of it, removing it fires ``detach``. Key bindings live on surfaces and
only the focused surface (top of the screen's focus stack) sees raw keys.

Nothing here imports curses, so the whole tree can be driven headlessly.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from paneldash.events import Emitter, Handler, Scheduler
from paneldash.keys import KeyEvent
from paneldash.layout import FILL, PositionFn, Rect, resolve

Painter = Callable[[Any, "Surface"], None]

_CONTROL_CHARS = str.maketrans("", "", "\t\r\n\v\f\0\b")


def _key_names(names: str | Iterable[str]) -> list[str]:
    return [names] if isinstance(names, str) else list(names)


class Surface(Emitter):
    def __init__(
        self,
        *,
        position: PositionFn | None = FILL,
        label: str = "",
        content: str = "",
        border: bool = False,
        padding: int = 0,
        hidden: bool = False,
        scrollable: bool = False,
        style: dict[str, Any] | None = None,
        name: str = "",
    ) -> None:
        super().__init__()
        self.position = position
        self.rect = Rect()
        self.label = label
        self.content = content
        self.border = border
        self.padding = padding
        self.visible = not hidden
        self.scrollable = scrollable
        self.scroll_offset = 0
        self.style: dict[str, Any] = dict(style or {})
        self.name = name
        self.parent: Surface | None = None
        self.children: list[Surface] = []
        self.painter: Painter | None = None
        self._bindings: dict[str, list[Handler]] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name or self.label.strip()!r}>"

    # ── Tree ───────────────────────────────────────────────────────────────

    @property
    def screen(self) -> Screen | None:
        node: Surface = self
        while node.parent is not None:
            node = node.parent
        return node if isinstance(node, Screen) else None

    @property
    def attached(self) -> bool:
        return self.screen is not None

    @property
    def inner(self) -> Rect:
        r = self.rect.shrink(1) if self.border else self.rect
        if self.padding:
            r = Rect(
                r.left + self.padding,
                r.top,
                max(0, r.width - 2 * self.padding),
                r.height,
            )
        return r

    def append(self, child: Surface) -> None:
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        if child.position is not None:
            child.rect = resolve(self.inner, child.position)
            child.layout()
        if self.attached:
            child._emit_tree("attach")
            self.request_render()

    def remove(self, child: Surface) -> None:
        if child.parent is not self:
            return
        was_attached = self.attached
        self.children.remove(child)
        child.parent = None
        if was_attached:
            child._emit_tree("detach")
            screen = self.screen
            if screen is not None:
                screen.prune_focus()
                screen.render()

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.remove(self)

    def set_front(self) -> None:
        """Move to the end of the parent's children so it paints last."""
        if self.parent is not None and self.parent.children[-1] is not self:
            self.parent.children.remove(self)
            self.parent.children.append(self)
            self.request_render()

    def _emit_tree(self, event: str) -> None:
        self.emit(event)
        for child in list(self.children):
            child._emit_tree(event)

    def layout(self) -> None:
        """Re-resolve children that carry a position rule."""
        inner = self.inner
        for child in self.children:
            if child.position is not None:
                child.rect = resolve(inner, child.position)
            child.layout()

    # ── Visibility & content ───────────────────────────────────────────────

    def show(self) -> None:
        if self.visible:
            return
        self.visible = True
        self.emit("show")
        self.request_render()

    def hide(self) -> None:
        if not self.visible:
            return
        self.visible = False
        self.emit("hide")
        self.request_render()

    def toggle(self) -> None:
        if self.visible:
            self.hide()
        else:
            self.show()

    def set_content(self, content: str) -> None:
        self.content = content
        self.request_render()

    def set_label(self, label: str) -> None:
        self.label = label
        self.request_render()

    def content_lines(self) -> list[str]:
        return self.content.split("\n") if self.content else []

    def scroll(self, delta: int) -> None:
        limit = max(0, len(self.content_lines()) - self.inner.height)
        self.scroll_offset = max(0, min(self.scroll_offset + delta, limit))
        self.request_render()

    def reset_scroll(self) -> None:
        self.scroll_offset = 0

    def request_render(self) -> None:
        screen = self.screen
        if screen is not None:
            screen.render()

    # ── Keys & focus ───────────────────────────────────────────────────────

    def key(self, names: str | Iterable[str], handler: Handler) -> None:
        for name in _key_names(names):
            self._bindings.setdefault(name, []).append(handler)

    def unkey(self, names: str | Iterable[str], handler: Handler) -> None:
        for name in _key_names(names):
            handlers = self._bindings.get(name)
            if not handlers:
                continue
            for i, h in enumerate(handlers):
                if h is handler or h == handler:
                    del handlers[i]
                    break
            if not handlers:
                del self._bindings[name]

    def bound_keys(self) -> list[str]:
        return list(self._bindings)

    def handle_key(self, event: KeyEvent) -> bool:
        """Deliver a raw key: ``keypress`` first, then bindings for it."""
        self.emit("keypress", event)
        handlers = self._bindings.get(event.full)
        if not handlers:
            return False
        for handler in list(handlers):
            if any(h is handler for h in self._bindings.get(event.full, ())):
                handler(event)
        return True

    def focus(self) -> None:
        screen = self.screen
        if screen is not None:
            screen.focus_push(self)

    @property
    def focused(self) -> bool:
        screen = self.screen
        return screen is not None and screen.focused is self


class TextField(Surface):
    """Single-line input. Unbound printable keys edit ``value``."""

    def __init__(self, **options: Any) -> None:
        options.setdefault("position", None)
        super().__init__(**options)
        self.value = ""

    def set_value(self, value: str) -> None:
        self.value = value
        self.request_render()

    def handle_key(self, event: KeyEvent) -> bool:
        if super().handle_key(event):
            return True
        if event.name == "backspace":
            self.set_value(self.value[:-1])
        elif event.ch and not (event.ctrl or event.meta):
            text = event.ch.translate(_CONTROL_CHARS)
            if text:
                self.set_value(self.value + text)
        return True


class Button(Surface):
    def __init__(self, **options: Any) -> None:
        options.setdefault("border", True)
        super().__init__(**options)
        self.key(["enter", "space"], lambda event: self.press())

    def press(self) -> None:
        self.emit("press")


class Screen(Surface):
    """Root of the tree: owns the focus stack, reserved keys and the scheduler."""

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        *,
        scheduler: Scheduler | None = None,
        title: str = "",
    ) -> None:
        super().__init__(position=None, label=title)
        self.rect = Rect(0, 0, width, height)
        self.scheduler = scheduler or Scheduler()
        self.focus_stack: list[Surface] = []
        self.dirty = True
        self._saved_focus: Surface | None = None
        self._reserved: dict[str, Handler] = {}

    @property
    def screen(self) -> Screen:
        return self

    @property
    def focused(self) -> Surface | None:  # type: ignore[override]
        return self.focus_stack[-1] if self.focus_stack else None

    def focus_push(self, surface: Surface) -> None:
        old = self.focused
        if old is surface:
            return
        if surface in self.focus_stack:
            self.focus_stack.remove(surface)
        self.focus_stack.append(surface)
        if old is not None:
            old.emit("blur")
        surface.emit("focus")
        self.render()

    def focus_pop(self) -> Surface | None:
        if not self.focus_stack:
            return None
        old = self.focus_stack.pop()
        old.emit("blur")
        if self.focused is not None:
            self.focused.emit("focus")
        self.render()
        return old

    def prune_focus(self) -> None:
        """Drop focus entries that are no longer attached."""
        old = self.focused
        self.focus_stack = [s for s in self.focus_stack if s.attached]
        if self.focused is not old and self.focused is not None:
            self.focused.emit("focus")

    def drop_focus(self, *surfaces: Surface) -> None:
        """Remove *surfaces* from the focus stack wherever they sit."""
        old = self.focused
        self.focus_stack = [
            s for s in self.focus_stack if not any(s is d for d in surfaces)
        ]
        if old is not None and self.focused is not old:
            old.emit("blur")
            if self.focused is not None:
                self.focused.emit("focus")
        self.render()

    def save_focus(self) -> None:
        self._saved_focus = self.focused

    def restore_focus(self) -> None:
        saved, self._saved_focus = self._saved_focus, None
        if saved is not None and saved.attached:
            saved.focus()

    def reserve_key(self, name: str, handler: Handler) -> None:
        """Bind *name* above every surface; focused surfaces never see it."""
        self._reserved[name] = handler

    def feed_key(self, event: KeyEvent) -> bool:
        reserved = self._reserved.get(event.full)
        if reserved is not None:
            reserved(event)
            return True
        target = self.focused
        if target is None:
            return False
        return target.handle_key(event)

    def resize(self, width: int, height: int) -> None:
        """Emit ``resize``, then ``resized`` once every resize handler has run."""
        self.rect = Rect(0, 0, width, height)
        self.layout()
        self.emit("resize")
        self.emit("resized")
        self.render()

    def render(self) -> None:
        self.dirty = True
