"""Base class for every panel and dialog placed in the dashboard."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from paneldash.errors import ConfigurationError
from paneldash.events import Emitter, Handler, ScheduledTask, Subscription
from paneldash.keys import KeyRouter
from paneldash.layout import PositionFn, resolve
from paneldash.surface import Surface

logger = logging.getLogger(__name__)


@dataclass
class LayoutEntry:
    """One panel placement inside a layout."""

    get_position: PositionFn
    view: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())

    @property
    def type(self) -> str:
        return str(self.view.get("type") or self.view.get("module") or "")


class ViewNode(Emitter):
    """Owns one surface bound to a rectangle computed from its parent.

    Subclasses build ``self.node`` and hand it to `mount`, which is also
    where the view starts following screen resizes, so a constructor that
    fails before mounting leaves nothing registered. Once mounted the
    node's position is recomputed on every resize; ``remount_on_resize``
    additionally re-appends it so it stays on top of its siblings.
    """

    remount_on_resize = False
    local_keys: tuple[str, ...] = ()

    def __init__(
        self,
        *,
        parent: Surface | None = None,
        layout_config: LayoutEntry | None = None,
        global_keys: Iterable[str] = (),
        metrics_provider: Any = None,
        info_provider: Any = None,
    ) -> None:
        super().__init__()
        if parent is None:
            raise ConfigurationError("View requires parent")
        if layout_config is None or not callable(
            getattr(layout_config, "get_position", None)
        ):
            raise ConfigurationError(
                "View requires layout_config with a get_position function"
            )
        screen = parent.screen
        if screen is None:
            raise ConfigurationError("View parent is not attached to a screen")

        self.parent = parent
        self.screen = screen
        self._get_position = layout_config.get_position
        self.layout_config: dict[str, Any] = {
            **self.default_layout_config(),
            **layout_config.view,
        }
        self.global_keys = list(global_keys)
        self.metrics_provider = metrics_provider
        self.info_provider = info_provider
        self.node: Surface | None = None
        self.key_router = KeyRouter(self.global_keys, self.local_keys)
        self._tasks: list[ScheduledTask] = []
        self._subscriptions: list[Subscription] = []
        self._resize_subscription: Subscription | None = None
        self._destroyed = False

    def default_layout_config(self) -> dict[str, Any]:
        return {}

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def mount(self, node: Surface) -> None:
        if self._resize_subscription is None and not self._destroyed:
            self._resize_subscription = self.screen.on(
                "resize", self.recalculate_position
            )
        node.position = None
        node.rect = resolve(self.parent.inner, self._get_position)
        self.node = node
        self.parent.append(node)
        node.layout()

    def recalculate_position(self) -> bool:
        """Re-resolve the node's rect. Returns False when nothing changed."""
        if self.node is None:
            return False
        rect = resolve(self.parent.inner, self._get_position)
        if rect == self.node.rect:
            return False
        self.node.rect = rect
        self.node.layout()
        if self.remount_on_resize and self.node.parent is self.parent:
            focused = self.screen.focused
            self.parent.remove(self.node)
            self.parent.append(self.node)
            if focused is not None and focused.attached and not focused.focused:
                focused.focus()
        self.node.request_render()
        return True

    def listen_global_keys(self, *surfaces: Surface) -> None:
        self.key_router.listen(*surfaces)

    def bind_local(
        self, surface: Surface, keys: Iterable[str], handler: Handler
    ) -> None:
        """Bind *keys* on *surface* while it is attached to the screen."""
        names = list(keys)
        self.subscribe(surface, "attach", lambda: surface.key(names, handler))
        self.subscribe(surface, "detach", lambda: surface.unkey(names, handler))
        if surface.attached:
            surface.key(names, handler)

    def subscribe(self, emitter: Emitter, event: str, handler: Handler) -> Subscription:
        sub = emitter.on(event, handler)
        self._subscriptions.append(sub)
        return sub

    def schedule_every(self, interval: float, callback: Callable[[], Any]) -> ScheduledTask:
        task = self.screen.scheduler.call_every(interval, callback)
        self._tasks.append(task)
        return task

    def destroy(self) -> None:
        self._destroyed = True
        if self._resize_subscription is not None:
            self._resize_subscription.cancel()
            self._resize_subscription = None
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        # detaching fires the handlers that remove local and bubbled keys
        if self.node is not None:
            self.parent.remove(self.node)
            self.node = None
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        self.key_router.close()
        self.remove_all_listeners()
        logger.debug("destroyed %s", type(self).__name__)
