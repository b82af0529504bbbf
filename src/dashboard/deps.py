"""Process-wide config and store access for the HTTP layer."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from src.common.config import load_config, resolve_storage_dir
from src.session.storage import JsonFileBackend
from src.session.store import SessionStore

logger = logging.getLogger("rovi.dashboard.deps")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

_store: SessionStore | None = None
_store_lock = threading.Lock()


def cfg() -> dict[str, Any]:
    return load_config(CONFIG_PATH)


def get_store() -> SessionStore:
    """The single store every request and WebSocket in this process shares."""
    global _store
    with _store_lock:
        if _store is None:
            storage_dir = resolve_storage_dir(cfg())
            _store = SessionStore(JsonFileBackend(storage_dir))
            logger.info("Session storage at %s", storage_dir)
        return _store


def reset_store() -> None:
    global _store
    with _store_lock:
        if _store is not None:
            _store.close()
        _store = None
