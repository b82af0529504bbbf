"""Origin-scoped key/value storage backends.

A backend plays the role of one storage origin: any number of
:class:`~src.session.store.SessionStore` instances ("documents") may attach to
the same backend.  Every write or removal is announced to the attached
listeners as a :class:`StorageEvent`, tagged with the store that caused it so
each store can ignore its own writes.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, NamedTuple

logger = logging.getLogger("rovi.session.storage")


class StorageEvent(NamedTuple):
    key: str
    source: Any = None


class StorageFullError(OSError):
    """Raised when a write would exceed the backend's quota."""


Listener = Callable[[StorageEvent], None]


class StorageBackend:
    """Base class: values are strings, keys are slot names."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        # Serializes writes and deletes; listeners are called outside it.
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        raise NotImplementedError

    def set_item(self, key: str, value: str, source: Any = None) -> None:
        with self._lock:
            self._write(key, value)
        self._dispatch(StorageEvent(key, source))

    def remove_item(self, key: str, source: Any = None) -> None:
        with self._lock:
            removed = self._delete(key)
        if removed:
            self._dispatch(StorageEvent(key, source))

    def keys(self) -> list[str]:
        raise NotImplementedError

    def _write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> bool:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Storage listener failed for %s", event.key)


class MemoryBackend(StorageBackend):
    """Dict-backed storage, optionally with a byte quota like a browser's."""

    def __init__(self, max_bytes: int | None = None) -> None:
        super().__init__()
        self._data: dict[str, str] = {}
        self.max_bytes = max_bytes

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)

    def _write(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(value) > self.max_bytes:
                raise StorageFullError(f"Storage quota of {self.max_bytes} bytes exceeded writing {key}")
        self._data[key] = value

    def _delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileBackend(StorageBackend):
    """One ``<key>.json`` file per slot inside *directory*.

    Writes are atomic (temp file + replace).  Other processes writing the
    same directory are picked up by :meth:`poll`, which dispatches
    source-less events for every slot whose file changed since it was last
    seen.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path | str) -> None:
        super().__init__()
        self.directory = Path(os.path.expanduser(str(directory)))
        self.directory.mkdir(parents=True, exist_ok=True)
        self._seen: dict[str, int | None] = {key: self._mtime(key) for key in self.keys()}

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.SUFFIX}"

    def _mtime(self, key: str) -> int | None:
        try:
            return self._path(key).stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob(f"*{self.SUFFIX}"))

    def _write(self, key: str, value: str) -> None:
        path = self._path(key)
        # A private temp file per write; concurrent writers never share one.
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.directory,
            prefix=f".{key}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            fh.write(value)
            tmp = Path(fh.name)
        try:
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        self._seen[key] = self._mtime(key)

    def _delete(self, key: str) -> bool:
        path = self._path(key)
        existed = path.exists()
        path.unlink(missing_ok=True)
        self._seen[key] = None
        return existed

    def poll(self) -> list[str]:
        """Dispatch events for slots changed outside this process.

        Returns the changed keys.
        """
        changed: list[str] = []
        with self._lock:
            for key in sorted(set(self._seen) | set(self.keys())):
                current = self._mtime(key)
                if current != self._seen.get(key):
                    self._seen[key] = current
                    changed.append(key)

        for key in changed:
            logger.debug("External change detected for %s", key)
            self._dispatch(StorageEvent(key))
        return changed
