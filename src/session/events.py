"""Explicit publish/subscribe for store change notifications."""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger("rovi.session.events")

SESSION_CHANGED = "sessionDataChanged"
OVERRIDES_CHANGED = "overridesChanged"
STORAGE = "storage"

EVENTS = (SESSION_CHANGED, OVERRIDES_CHANGED, STORAGE)

Handler = Callable[[Any], None]


class Subscription:
    """Handle returned by :meth:`Notifier.subscribe`.

    The owner calls :meth:`unsubscribe` (or leaves the ``with`` block) when
    it no longer wants notifications.
    """

    def __init__(self, notifier: "Notifier", name: str, handler: Handler) -> None:
        self._notifier = notifier
        self.name = name
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._notifier._remove(self.name, self.handler)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unsubscribe()


class Notifier:
    def __init__(self, names: tuple[str, ...] = EVENTS) -> None:
        self._subscribers: dict[str, list[Handler]] = {name: [] for name in names}

    def subscribe(self, name: str, handler: Handler) -> Subscription:
        if name not in self._subscribers:
            raise ValueError(f"Unknown event: {name}")
        self._subscribers[name].append(handler)
        return Subscription(self, name, handler)

    def publish(self, name: str, payload: Any = None) -> int:
        """Call every handler for *name*; returns how many were called.

        A failing handler is logged and does not stop the others.
        """
        handlers = list(self._subscribers.get(name, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", name)
        return len(handlers)

    def _remove(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
