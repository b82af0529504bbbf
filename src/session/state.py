"""In-memory dashboard state kept in sync with a :class:`SessionStore`."""

from __future__ import annotations

import logging
from typing import Any, Callable

from src.session.events import OVERRIDES_CHANGED, SESSION_CHANGED, STORAGE
from src.session.overrides import effective_snapshot
from src.session.store import OVERRIDES_KEY, SESSION_KEY, SessionStore

logger = logging.getLogger("rovi.session.state")


class DashboardState:
    """Cached session + overrides with effective views for the widgets.

    Every notification from the store replaces the cached value outright;
    local edits are never merged with an incoming one.  ``on_change`` is
    called with the event name after each refresh.
    """

    def __init__(
        self,
        store: SessionStore,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self.store = store
        self.on_change = on_change
        self.session = store.get_session()
        self.overrides = store.get_overrides()
        self._subscriptions = [
            store.subscribe(SESSION_CHANGED, self._on_session),
            store.subscribe(OVERRIDES_CHANGED, self._on_overrides),
            store.subscribe(STORAGE, self._on_storage),
        ]

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    def __enter__(self) -> "DashboardState":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _changed(self, name: str) -> None:
        if self.on_change is not None:
            self.on_change(name)

    def _on_session(self, session: dict[str, Any] | None) -> None:
        self.session = session if session is not None else self.store.get_session()
        self._changed(SESSION_CHANGED)

    def _on_overrides(self, overrides: dict[str, Any] | None) -> None:
        self.overrides = overrides if overrides is not None else self.store.get_overrides()
        self._changed(OVERRIDES_CHANGED)

    def _on_storage(self, key: str) -> None:
        if key == SESSION_KEY:
            self.session = self.store.get_session()
        elif key == OVERRIDES_KEY:
            self.overrides = self.store.get_overrides()
        else:
            return
        logger.debug("Resynced %s after external change", key)
        self._changed(STORAGE)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return effective_snapshot(self.session, self.overrides)

    @property
    def meetings(self) -> list[dict[str, Any]]:
        return self.snapshot()["meetings"]

    @property
    def habits(self) -> list[dict[str, Any]]:
        return self.snapshot()["habits"]

    @property
    def expenses(self) -> list[dict[str, Any]]:
        return self.snapshot()["expenses"]

    @property
    def total_expenses(self) -> float:
        return self.snapshot()["total_expenses"]

    @property
    def prices(self) -> list[dict[str, Any]]:
        return self.snapshot()["prices"]
