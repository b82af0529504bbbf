#!/usr/bin/env python3
"""Rovi dashboard API -- session data, overrides, widgets and live updates.

Run with:
    python3 -m uvicorn src.dashboard.app:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Allow running from repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from src.agents.quotes import fetch_quote
from src.agents.weather import CityNotFoundError, WeatherError, weather_from_config
from src.common.timefmt import format_clock
from src.dashboard.deps import cfg, get_store
from src.dashboard.summary import daily_summary
from src.session.overrides import (
    OVERRIDE_SCOPES,
    clamp_progress,
    effective_expenses,
    effective_habits,
    effective_prices,
    effective_snapshot,
    normalize_overrides,
    total_expenses,
)
from src.session.state import DashboardState
from src.session.storage import JsonFileBackend
from src.session.store import SESSION_FIELDS, is_valid_session

logger = logging.getLogger("rovi.dashboard")

app = FastAPI(title="Rovi Dashboard", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from src.chat.routes import router as chat_router, prune_idle_sessions as _prune_chat_sessions
app.include_router(chat_router)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_POLL_INTERVAL = 1.0


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(400, "Request body must be JSON")


# ══════════════════════════════════════════════════════════════════════════════
#  Session + overrides
# ══════════════════════════════════════════════════════════════════════════════

@app.get("/api/session")
async def get_session() -> JSONResponse:
    return JSONResponse(get_store().get_session())


@app.put("/api/session")
async def put_session(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if not is_valid_session(body):
        raise HTTPException(422, f"Session must contain {', '.join(SESSION_FIELDS)}")
    get_store().set_session(body)
    return JSONResponse(body)


@app.patch("/api/session")
async def patch_session(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(422, "Body must be an object")
    partial = {k: v for k, v in body.items() if k in SESSION_FIELDS and v is not None}
    if not partial:
        raise HTTPException(422, f"Nothing to update; expected any of {', '.join(SESSION_FIELDS)}")
    return JSONResponse(get_store().update_session(partial))


@app.get("/api/overrides")
async def get_overrides() -> JSONResponse:
    return JSONResponse(get_store().get_overrides())


@app.put("/api/overrides")
async def put_overrides(request: Request) -> JSONResponse:
    body = await _json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(422, "Body must be an object")
    overrides = normalize_overrides(body)
    get_store().set_overrides(overrides)
    return JSONResponse(overrides)


@app.put("/api/overrides/{scope}/{key}")
async def put_override(scope: str, key: str, request: Request) -> JSONResponse:
    """Set one override, e.g. an edited expense amount from the widget."""
    if scope not in OVERRIDE_SCOPES:
        raise HTTPException(404, f"Unknown override scope: {scope}")
    body = await _json_body(request)
    try:
        value = float(body["value"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(422, "Body must be {\"value\": <number>}")
    if value < 0:
        raise HTTPException(422, "Value must be non-negative")

    store = get_store()
    if scope == "habits":
        target = next((h.get("target", 100) for h in store.get_session()["habits"] if h["name"] == key), 100)
        value = clamp_progress(value, target)
    elif value.is_integer():
        value = int(value)

    overrides = store.get_overrides()
    overrides[scope][key] = value
    store.set_overrides(overrides)
    return JSONResponse(overrides)


@app.delete("/api/overrides/{scope}/{key}")
async def delete_override(scope: str, key: str) -> JSONResponse:
    if scope not in OVERRIDE_SCOPES:
        raise HTTPException(404, f"Unknown override scope: {scope}")
    store = get_store()
    overrides = store.get_overrides()
    if key not in overrides[scope]:
        raise HTTPException(404, "Override not found")
    del overrides[scope][key]
    store.set_overrides(overrides)
    return JSONResponse(overrides)


@app.delete("/api/storage")
async def clear_storage() -> JSONResponse:
    get_store().clear()
    return JSONResponse({"ok": True})


# ══════════════════════════════════════════════════════════════════════════════
#  Widgets
# ══════════════════════════════════════════════════════════════════════════════

@app.get("/api/dashboard")
async def dashboard() -> JSONResponse:
    store = get_store()
    return JSONResponse(effective_snapshot(store.get_session(), store.get_overrides()))


@app.get("/api/meetings")
async def list_meetings() -> JSONResponse:
    return JSONResponse(get_store().get_session()["meetings"])


@app.put("/api/meetings/{meeting_id}")
async def edit_meeting(meeting_id: int, request: Request) -> JSONResponse:
    """Replace a meeting's fields wholesale."""
    body = await _json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(422, "Body must be an object")

    store = get_store()
    meetings = store.get_session()["meetings"]
    current = next((m for m in meetings if m.get("id") == meeting_id), None)
    if current is None:
        raise HTTPException(404, "Meeting not found")

    time_str = str(body.get("time", current["time"]))
    if not _TIME_RE.match(time_str):
        raise HTTPException(422, "time must be HH:MM (24-hour)")

    participants = body.get("participants", current.get("participants", []))
    if isinstance(participants, str):
        participants = [p.strip() for p in participants.split(",") if p.strip()]

    updated = {
        "id": meeting_id,
        "time": time_str,
        "title": str(body.get("title", current["title"])),
        "participants": list(participants),
    }
    store.update_session({"meetings": [updated if m.get("id") == meeting_id else m for m in meetings]})
    return JSONResponse(updated)


@app.get("/api/habits")
async def list_habits() -> JSONResponse:
    store = get_store()
    return JSONResponse(effective_habits(store.get_session(), store.get_overrides()))


@app.get("/api/expenses")
async def list_expenses() -> JSONResponse:
    store = get_store()
    expenses = effective_expenses(store.get_session(), store.get_overrides())
    return JSONResponse({"expenses": expenses, "total": total_expenses(expenses)})


@app.get("/api/prices")
async def list_prices() -> JSONResponse:
    store = get_store()
    return JSONResponse(effective_prices(store.get_session(), store.get_overrides()))


@app.get("/api/summary")
async def summary() -> JSONResponse:
    return JSONResponse({"summary": daily_summary(get_store())})


@app.get("/api/quote")
async def quote() -> JSONResponse:
    return JSONResponse(await asyncio.to_thread(fetch_quote))


@app.get("/api/weather")
async def weather(city: str | None = None) -> JSONResponse:
    config = cfg()
    city = city or config.get("default_city", "Miami")
    try:
        data = await asyncio.to_thread(weather_from_config, city, config)
    except CityNotFoundError as exc:
        return JSONResponse({"error": str(exc)}, status_code=404)
    except WeatherError as exc:
        logger.warning("Weather lookup failed for %s: %s", city, exc)
        return JSONResponse({"error": str(exc)}, status_code=502)
    data["city"] = city
    return JSONResponse(data)


@app.get("/api/clock")
async def clock(tz: str | None = None) -> JSONResponse:
    return JSONResponse({"time": format_clock(tz), "timezone": tz})


# ══════════════════════════════════════════════════════════════════════════════
#  Live updates
# ══════════════════════════════════════════════════════════════════════════════

@app.on_event("startup")
async def _start_session_cleanup() -> None:
    async def _cleanup_loop() -> None:
        while True:
            await asyncio.sleep(120)
            try:
                await _prune_chat_sessions()
            except Exception:
                logger.exception("Session cleanup error")
    asyncio.create_task(_cleanup_loop())


@app.websocket("/ws/changes")
async def ws_changes(websocket: WebSocket) -> None:
    """Push the effective dashboard snapshot whenever stored data changes.

    The first message is the current snapshot; each later one names the
    event that caused it.  Writes made by other processes sharing the storage
    directory are picked up by polling.  Anything the client sends is ignored.
    """
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    store = get_store()
    state = DashboardState(store, on_change=lambda name: loop.call_soon_threadsafe(queue.put_nowait, name))

    async def _watch_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Changes WebSocket disconnected")
        finally:
            queue.put_nowait(None)

    watcher = asyncio.create_task(_watch_disconnect())
    try:
        await websocket.send_json({"event": "snapshot", "data": state.snapshot()})
        while True:
            try:
                name = await asyncio.wait_for(queue.get(), timeout=_POLL_INTERVAL)
            except asyncio.TimeoutError:
                if isinstance(store.backend, JsonFileBackend):
                    store.backend.poll()
                continue
            if name is None:
                break
            await websocket.send_json({"event": name, "data": state.snapshot()})
    except WebSocketDisconnect:
        logger.info("Changes WebSocket disconnected")
    except Exception:
        logger.exception("Changes WebSocket unexpected error")
    finally:
        watcher.cancel()
        state.close()


if __name__ == "__main__":
    import uvicorn

    from src.common.config import setup_logging

    setup_logging(cfg())
    uvicorn.run(
        "src.dashboard.app:app",
        host="127.0.0.1",
        port=8765,
        reload=False,
        log_level="info",
        ws_ping_interval=30,
        ws_ping_timeout=120,
    )
