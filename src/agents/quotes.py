"""Daily motivational quote from the language model, with a fixed fallback."""

from __future__ import annotations

import logging
import re
from typing import Callable

from src.chat.prompts import QUOTE_PROMPT

logger = logging.getLogger("rovi.agents.quotes")

SEPARATOR = "—"

FALLBACK_QUOTE = {"text": "The only way to do great work is to love what you do.", "author": "Steve Jobs"}

_QUOTE_MARKS = re.compile(r"^[\"'“”]+|[\"'“”]+$")


def parse_quote(response: str) -> dict[str, str]:
    """Split ``"text" — Author`` at the first em dash.

    Without a separator the whole response becomes the text and the author is
    ``Unknown``.
    """
    parts = [part.strip() for part in response.split(SEPARATOR)]
    if len(parts) < 2:
        return {"text": response.strip(), "author": "Unknown"}
    text = _QUOTE_MARKS.sub("", parts[0]).strip()
    author = SEPARATOR.join(parts[1:]).strip()
    return {"text": text, "author": author}


def fetch_quote(ask: Callable[[str], str] | None = None) -> dict[str, str]:
    """Ask the model for a quote; any failure yields :data:`FALLBACK_QUOTE`."""
    if ask is None:
        from src.agents.llm_provider import ask
    try:
        return parse_quote(ask(QUOTE_PROMPT))
    except Exception as exc:
        logger.error("Error fetching quote: %s", exc)
        return dict(FALLBACK_QUOTE)
