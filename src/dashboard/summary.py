"""Daily summary line, generated once per calendar day and cached in storage."""

from __future__ import annotations

import logging
from datetime import date

from src.session.store import SessionStore

logger = logging.getLogger("rovi.dashboard.summary")

CACHE_PREFIX = "rovi_daily_summary_"

FALLBACK_SUMMARY = "You have 3 meetings scheduled today. Track your habits progress. Stay productive!"


def summary_key(day: date) -> str:
    return f"{CACHE_PREFIX}{day.isoformat()}"


def build_summary(meeting_count: int, category_count: int) -> str:
    return (
        f"You have {meeting_count} meetings scheduled today. "
        "Keep tracking your daily habits progress. "
        f"Your expenses are tracked across {category_count} categories. "
        "Stay focused and productive!"
    )


def daily_summary(store: SessionStore, today: date | None = None) -> str:
    """Return today's summary, reusing the cached text when present."""
    day = today or date.today()
    key = summary_key(day)
    backend = store.backend

    try:
        cached = backend.get_item(key)
    except OSError as exc:
        logger.error("Error reading %s: %s", key, exc)
        cached = None
    if cached:
        return cached

    try:
        session = store.get_session()
        text = build_summary(len(session["meetings"]), len(session["expenses"]))
    except Exception:
        logger.exception("Failed to build daily summary")
        text = FALLBACK_SUMMARY

    try:
        backend.set_item(key, text, source=store)
    except OSError as exc:
        logger.error("Error caching %s: %s", key, exc)
    else:
        _prune_old_summaries(store, key)
    return text


def _prune_old_summaries(store: SessionStore, keep: str) -> None:
    """Drop cached summaries from earlier days."""
    backend = store.backend
    try:
        stale = [k for k in backend.keys() if k.startswith(CACHE_PREFIX) and k != keep]
        for old in stale:
            backend.remove_item(old, source=store)
    except OSError as exc:
        logger.error("Error removing old summaries: %s", exc)
