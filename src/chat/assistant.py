"""Chat session: deterministic commands first, the language model otherwise."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from src.chat.commands import apply_command, interpret
from src.chat.prompts import CONNECTION_ERROR_REPLY, GREETING, build_assistant_prompt
from src.session.overrides import effective_snapshot
from src.session.store import SessionStore

logger = logging.getLogger("rovi.chat.assistant")

DEFAULT_HISTORY_TURNS = 6


@dataclass
class ChatReply:
    reply: str
    matched: bool
    rule: str | None = None


class ChatSession:
    """One conversation against a store.

    ``complete`` takes a prompt string and returns the model's text; it
    defaults to :func:`src.agents.llm_provider.ask`.
    """

    def __init__(
        self,
        store: SessionStore,
        complete: Callable[[str], str] | None = None,
        city: str | None = None,
        history_turns: int = DEFAULT_HISTORY_TURNS,
    ) -> None:
        if complete is None:
            from src.agents.llm_provider import ask as complete
        self.store = store
        self.complete = complete
        self.city = city
        self.history_turns = history_turns
        self.history: list[dict[str, str]] = []

    @property
    def greeting(self) -> str:
        return GREETING

    def _recent(self) -> list[dict[str, str]]:
        if self.history_turns <= 0:
            return []
        return self.history[-self.history_turns:]

    def send(self, text: str) -> ChatReply:
        message = (text or "").strip()
        if not message:
            raise ValueError("message is required")

        session = self.store.get_session()
        overrides = self.store.get_overrides()

        result = interpret(message, session, overrides)
        if result.matched:
            apply_command(self.store, result)
            reply = ChatReply(result.reply, True, result.rule)
        else:
            prompt = build_assistant_prompt(
                message,
                effective_snapshot(session, overrides),
                self._recent(),
                city=self.city,
            )
            try:
                text_reply = self.complete(prompt)
            except Exception:
                logger.exception("Chat completion failed")
                text_reply = CONNECTION_ERROR_REPLY
            reply = ChatReply(text_reply, False)

        self.history.append({"role": "user", "content": message})
        self.history.append({"role": "assistant", "content": reply.reply})
        return reply
