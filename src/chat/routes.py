"""FastAPI router for the assistant chat panel."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from src.chat.assistant import DEFAULT_HISTORY_TURNS, ChatSession
from src.dashboard.deps import cfg, get_store

logger = logging.getLogger("rovi.chat.routes")

router = APIRouter(prefix="/api", tags=["chat"])

_chat_sessions: dict[str, ChatSession] = {}
_session_last_active: dict[str, float] = {}
_SESSION_IDLE_TIMEOUT = 600


def _get_or_create_chat(session_id: str | None, city: str | None) -> tuple[str, ChatSession]:
    if session_id and session_id in _chat_sessions:
        chat = _chat_sessions[session_id]
        if city:
            chat.city = city
        _session_last_active[session_id] = time.time()
        return session_id, chat

    config = cfg()
    assistant_cfg = config.get("assistant", {}) or {}
    chat = ChatSession(
        get_store(),
        city=city or config.get("default_city"),
        history_turns=int(assistant_cfg.get("history_turns", DEFAULT_HISTORY_TURNS)),
    )
    sid = session_id or uuid.uuid4().hex[:12]
    _chat_sessions[sid] = chat
    _session_last_active[sid] = time.time()
    return sid, chat


@router.post("/chat")
async def chat(request: Request) -> JSONResponse:
    """Handle one chat message.

    Request body::

        {"message": "set price of Eggs to $3.50", "session_id": "abc123", "city": "Miami"}
    """
    body = await request.json()
    message = str(body.get("message", "")).strip()
    if not message:
        raise HTTPException(400, "message is required")

    session_id, session = _get_or_create_chat(body.get("session_id"), body.get("city"))
    reply = await asyncio.to_thread(session.send, message)

    return JSONResponse({
        "session_id": session_id,
        "reply": reply.reply,
        "matched": reply.matched,
        "rule": reply.rule,
    })


@router.get("/chat/{session_id}")
async def chat_history(session_id: str) -> JSONResponse:
    session = _chat_sessions.get(session_id)
    if session is None:
        raise HTTPException(404, "Chat session not found")
    messages: list[dict[str, Any]] = [{"role": "assistant", "content": session.greeting}]
    messages.extend(session.history)
    return JSONResponse({"session_id": session_id, "messages": messages})


@router.delete("/chat/{session_id}")
async def delete_chat(session_id: str) -> JSONResponse:
    removed = _chat_sessions.pop(session_id, None)
    _session_last_active.pop(session_id, None)
    if removed is None:
        raise HTTPException(404, "Chat session not found")
    return JSONResponse({"ok": True})


async def prune_idle_sessions() -> None:
    """Remove chat sessions idle longer than timeout."""
    now = time.time()
    stale = [
        sid for sid, ts in _session_last_active.items()
        if (now - ts) > _SESSION_IDLE_TIMEOUT
    ]
    for sid in stale:
        _chat_sessions.pop(sid, None)
        _session_last_active.pop(sid, None)
        logger.info("Pruned idle chat session: %s", sid)
