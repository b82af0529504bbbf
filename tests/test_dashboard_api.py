"""HTTP and WebSocket tests for the dashboard API.

Each PAR test follows: Plan expected outcome -> Act (API call) -> Review (validate).
"""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from src.agents.weather import CityNotFoundError, WeatherError
from tests.conftest import make_mock_litellm_response, par_loop

# ---------------------------------------------------------------------------
# 1. Session and overrides
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestSessionEndpoints:
    async def test_session_initialized(self, client: httpx.AsyncClient) -> None:
        async def act():
            return await client.get("/api/session")

        def review(r: httpx.Response):
            if r.status_code != 200:
                return False, f"Expected 200, got {r.status_code}"
            data = r.json()
            missing = {"meetings", "habits", "expenses", "prices"} - set(data)
            if missing:
                return False, f"Missing fields: {missing}"
            if data["expenses"][0]["amount"] != 344:
                return False, f"Unexpected seeded Food amount: {data['expenses'][0]}"
            return True, ""

        await par_loop(act, review, label="get_session")

    async def test_put_rejects_incomplete_session(self, client: httpx.AsyncClient) -> None:
        r = await client.put("/api/session", json={"meetings": []})
        assert r.status_code == 422

    async def test_patch_merges_fields(self, client: httpx.AsyncClient) -> None:
        r = await client.patch("/api/session", json={"meetings": []})
        assert r.status_code == 200
        assert r.json()["meetings"] == []
        assert len(r.json()["habits"]) == 5

    async def test_override_round_trip(self, client: httpx.AsyncClient) -> None:
        r = await client.put("/api/overrides", json={"prices": {"Bread": 1.5}})
        assert r.json() == {"habits": {}, "expenses": {}, "prices": {"Bread": 1.5}}
        r = await client.get("/api/overrides")
        assert r.json()["prices"] == {"Bread": 1.5}

    async def test_single_override(self, client: httpx.AsyncClient) -> None:
        r = await client.put("/api/overrides/expenses/Food", json={"value": 200})
        assert r.status_code == 200
        assert r.json()["expenses"] == {"Food": 200}

        r = await client.get("/api/expenses")
        assert r.json()["total"] == 1830 - 344 + 200

        r = await client.delete("/api/overrides/expenses/Food")
        assert r.json()["expenses"] == {}
        r = await client.get("/api/expenses")
        assert r.json()["total"] == 1830

    async def test_habit_override_clamped(self, client: httpx.AsyncClient) -> None:
        r = await client.put("/api/overrides/habits/Meditation", json={"value": 140})
        assert r.json()["habits"] == {"Meditation": 100}

    async def test_override_validation(self, client: httpx.AsyncClient) -> None:
        assert (await client.put("/api/overrides/snacks/Chips", json={"value": 1})).status_code == 404
        assert (await client.put("/api/overrides/prices/Bread", json={"value": -1})).status_code == 422
        assert (await client.put("/api/overrides/prices/Bread", json={"value": "cheap"})).status_code == 422
        assert (await client.delete("/api/overrides/prices/Bread")).status_code == 404

    async def test_clear_storage_regenerates(self, client: httpx.AsyncClient) -> None:
        await client.patch("/api/session", json={"meetings": []})
        await client.put("/api/overrides/prices/Bread", json={"value": 1})
        r = await client.delete("/api/storage")
        assert r.json() == {"ok": True}

        assert len((await client.get("/api/meetings")).json()) == 3
        assert (await client.get("/api/overrides")).json()["prices"] == {}


# ---------------------------------------------------------------------------
# 2. Widgets
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestWidgetEndpoints:
    async def test_dashboard_applies_overrides(self, client: httpx.AsyncClient) -> None:
        await client.put("/api/overrides", json={"habits": {"Meditation": 9}, "prices": {"Bread": 0.99}})

        r = await client.get("/api/dashboard")
        data = r.json()
        assert next(h for h in data["habits"] if h["name"] == "Meditation")["progress"] == 9
        assert next(p for p in data["prices"] if p["name"] == "Bread")["cheapest"] == 0.99
        assert data["total_expenses"] == 1830

        baseline = (await client.get("/api/session")).json()
        assert next(p for p in baseline["prices"] if p["name"] == "Bread")["cheapest"] == 2.99

    async def test_edit_meeting(self, client: httpx.AsyncClient) -> None:
        r = await client.put(
            "/api/meetings/2",
            json={"time": "15:45", "title": "Client Call", "participants": "Emma, Raj"},
        )
        assert r.status_code == 200
        assert r.json() == {"id": 2, "time": "15:45", "title": "Client Call", "participants": ["Emma", "Raj"]}

        meetings = (await client.get("/api/meetings")).json()
        assert [m["time"] for m in meetings] == ["09:00", "15:45", "14:00"]

    async def test_edit_meeting_validation(self, client: httpx.AsyncClient) -> None:
        assert (await client.put("/api/meetings/2", json={"time": "3pm"})).status_code == 422
        assert (await client.put("/api/meetings/42", json={"time": "10:00"})).status_code == 404

    async def test_habits_and_prices(self, client: httpx.AsyncClient) -> None:
        habits = (await client.get("/api/habits")).json()
        assert [h["progress"] for h in habits] == [53, 60, 67, 74, 81]
        prices = (await client.get("/api/prices")).json()
        assert prices[2]["name"] == "Eggs (12)"

    async def test_summary(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/summary")
        assert r.json()["summary"].startswith("You have 3 meetings scheduled today.")

    async def test_quote(self, client: httpx.AsyncClient, mock_llm) -> None:
        mock_llm.return_value = make_mock_litellm_response('"Begin anywhere." — John Cage')
        r = await client.get("/api/quote")
        assert r.json() == {"text": "Begin anywhere.", "author": "John Cage"}

    async def test_quote_fallback(self, client: httpx.AsyncClient, mock_llm) -> None:
        mock_llm.side_effect = RuntimeError("offline")
        r = await client.get("/api/quote")
        assert r.json()["author"] == "Steve Jobs"

    async def test_weather_default_city(self, client: httpx.AsyncClient) -> None:
        result = {"temperature": 30, "condition": "clear", "description": "clear sky",
                  "weather_code": 0, "timezone": "America/New_York"}
        with patch("src.dashboard.app.weather_from_config", return_value=result) as m:
            r = await client.get("/api/weather")
        assert r.status_code == 200
        assert r.json()["city"] == "Miami"
        assert m.call_args.args[1]["weather"]["geocoding_url"] == "https://geo.test/v1/search"

    async def test_weather_errors(self, client: httpx.AsyncClient) -> None:
        with patch("src.dashboard.app.weather_from_config", side_effect=CityNotFoundError('City "Nowhere" not found.')):
            r = await client.get("/api/weather", params={"city": "Nowhere"})
        assert r.status_code == 404
        assert r.json() == {"error": 'City "Nowhere" not found.'}

        with patch("src.dashboard.app.weather_from_config", side_effect=WeatherError("Weather API error: 500")):
            r = await client.get("/api/weather", params={"city": "Miami"})
        assert r.status_code == 502

    async def test_clock(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/clock", params={"tz": "Asia/Tokyo"})
        data = r.json()
        assert data["timezone"] == "Asia/Tokyo"
        assert data["time"].endswith(("AM", "PM"))


# ---------------------------------------------------------------------------
# 3. Chat
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestChatEndpoints:
    async def test_command_updates_dashboard(self, client: httpx.AsyncClient, mock_llm) -> None:
        r = await client.post("/api/chat", json={"message": "set price of Eggs to $3.50"})
        data = r.json()
        assert data["matched"] is True
        assert data["rule"] == "set_price"
        assert "$3.50" in data["reply"]
        mock_llm.assert_not_called()

        overrides = (await client.get("/api/overrides")).json()
        assert overrides["prices"]["Eggs"] == 3.5

    async def test_reschedule_through_chat(self, client: httpx.AsyncClient) -> None:
        r = await client.post("/api/chat", json={"message": "reschedule 9am meeting to 10:30am"})
        assert "10:30 AM" in r.json()["reply"]
        meetings = (await client.get("/api/meetings")).json()
        assert meetings[0]["time"] == "10:30"

    async def test_free_text_uses_model(self, client: httpx.AsyncClient, mock_llm) -> None:
        async def act():
            return await client.post("/api/chat", json={"message": "hello there"})

        def review(r: httpx.Response):
            if r.status_code != 200:
                return False, f"Expected 200, got {r.status_code}: {r.text}"
            data = r.json()
            if data.get("reply") != "Test response":
                return False, f"Unexpected reply: {data}"
            if data.get("matched") is not False:
                return False, "Free text should not match a command"
            return True, ""

        await par_loop(act, review, label="chat_free_text")
        assert mock_llm.called

    async def test_history_and_delete(self, client: httpx.AsyncClient) -> None:
        r = await client.post("/api/chat", json={"message": "what about 2pm"})
        sid = r.json()["session_id"]
        await client.post("/api/chat", json={"message": "hi", "session_id": sid})

        r = await client.get(f"/api/chat/{sid}")
        messages = r.json()["messages"]
        assert messages[0]["role"] == "assistant"
        assert "Rovi" in messages[0]["content"]
        assert [m["role"] for m in messages[1:]] == ["user", "assistant", "user", "assistant"]

        assert (await client.delete(f"/api/chat/{sid}")).status_code == 200
        assert (await client.get(f"/api/chat/{sid}")).status_code == 404

    async def test_empty_message(self, client: httpx.AsyncClient) -> None:
        r = await client.post("/api/chat", json={"message": "   "})
        assert r.status_code == 400


# ---------------------------------------------------------------------------
# 4. Live updates
# ---------------------------------------------------------------------------

class TestChangesWebSocket:
    def test_snapshot_then_change(self, app_config, mock_llm) -> None:
        from fastapi.testclient import TestClient

        from src.dashboard.app import app
        from src.dashboard.deps import get_store

        tc = TestClient(app)
        with tc.websocket_connect("/ws/changes") as ws:
            first = ws.receive_json()
            assert first["event"] == "snapshot"
            assert first["data"]["total_expenses"] == 1830

            get_store().set_overrides({"habits": {}, "expenses": {"Food": 0}, "prices": {}})
            update = ws.receive_json()
            assert update["event"] == "overridesChanged"
            assert update["data"]["total_expenses"] == 1830 - 344
