"""Persistent session store: baseline session + override triple.

Two slots live in the storage backend as plain JSON:

``rovi_session_data``  ``{meetings, habits, expenses, prices}``
``rovi_overrides``     ``{habits: {}, expenses: {}, prices: {}}``

Reads go to storage on demand.  Every write notifies in-process subscribers
with the new value (``sessionDataChanged`` / ``overridesChanged``); other
stores attached to the same backend get a payload-less ``storage`` event with
the slot key and are expected to re-read.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any

from src.data.generator import initial_session
from src.session.events import (
    OVERRIDES_CHANGED,
    SESSION_CHANGED,
    STORAGE,
    Handler,
    Notifier,
    Subscription,
)
from src.session.overrides import empty_overrides, normalize_overrides
from src.session.storage import StorageBackend, StorageEvent

logger = logging.getLogger("rovi.session.store")

SESSION_KEY = "rovi_session_data"
OVERRIDES_KEY = "rovi_overrides"

SESSION_FIELDS = ("meetings", "habits", "expenses", "prices")


def is_valid_session(value: Any) -> bool:
    return isinstance(value, dict) and all(value.get(f) is not None for f in SESSION_FIELDS)


class SessionStore:
    """Read-through/write-through access to the session and override slots."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend
        self._notifier = Notifier()
        # Values whose last write failed; they win over storage until a
        # later write to the same slot succeeds.
        self._unpersisted: dict[str, Any] = {}
        # Held across read-modify-write sequences so concurrent requests in
        # this process never interleave their writes.
        self._lock = threading.RLock()
        backend.add_listener(self._on_storage_event)

    def close(self) -> None:
        self.backend.remove_listener(self._on_storage_event)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        return self._notifier.subscribe(event, handler)

    def _on_storage_event(self, event: StorageEvent) -> None:
        if event.source is self:
            return
        if event.key not in (SESSION_KEY, OVERRIDES_KEY):
            return
        self._unpersisted.pop(event.key, None)
        self._notifier.publish(STORAGE, event.key)

    # ------------------------------------------------------------------
    # Raw slot access
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Any:
        if key in self._unpersisted:
            return copy.deepcopy(self._unpersisted[key])
        try:
            raw = self.backend.get_item(key)
            if raw is None:
                return None
            return json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.error("Error reading %s from storage: %s", key, exc)
            return None

    def _write(self, key: str, value: Any) -> bool:
        with self._lock:
            try:
                self.backend.set_item(key, json.dumps(value), source=self)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Error saving %s to storage: %s", key, exc)
                self._unpersisted[key] = copy.deepcopy(value)
                return False
            self._unpersisted.pop(key, None)
            return True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def get_session(self) -> dict[str, Any]:
        """Return the stored session, creating a fresh one if missing or invalid."""
        with self._lock:
            stored = self._read(SESSION_KEY)
            if is_valid_session(stored):
                return stored

            if stored is not None:
                logger.warning("Stored session is missing required fields, reinitializing")
            session = initial_session()
            self.set_session(session)
            return session

    def set_session(self, session: dict[str, Any]) -> None:
        self._write(SESSION_KEY, session)
        self._notifier.publish(SESSION_CHANGED, copy.deepcopy(session))

    def update_session(self, partial: dict[str, Any]) -> dict[str, Any]:
        """Shallow-merge *partial* over the current session and save it."""
        with self._lock:
            updated = {**self.get_session(), **partial}
            self.set_session(updated)
            return updated

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    def get_overrides(self) -> dict[str, dict[str, Any]]:
        stored = self._read(OVERRIDES_KEY)
        if stored is None:
            return empty_overrides()
        if not isinstance(stored, dict):
            logger.warning("Stored overrides are not a mapping, ignoring")
            return empty_overrides()
        return normalize_overrides(stored)

    def set_overrides(self, overrides: dict[str, dict[str, Any]]) -> None:
        self._write(OVERRIDES_KEY, overrides)
        self._notifier.publish(OVERRIDES_CHANGED, copy.deepcopy(overrides))

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Remove both slots. No change notification is sent to subscribers."""
        with self._lock:
            self._unpersisted.clear()
            for key in (SESSION_KEY, OVERRIDES_KEY):
                try:
                    self.backend.remove_item(key, source=self)
                except OSError as exc:
                    logger.error("Error removing %s from storage: %s", key, exc)
