"""Shared fixtures: in-memory stores, a mocked LLM and an app bound to temp storage."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock, patch

import httpx
import pytest
import pytest_asyncio

os.environ.setdefault("GEMINI_API_KEY", "test-fake-key")

REPO_DIR = Path(__file__).resolve().parent.parent


def make_mock_litellm_response(content: str = "Test response"):
    """Build a mock LiteLLM ModelResponse."""
    msg = MagicMock()
    msg.content = content

    choice = MagicMock()
    choice.message = msg

    resp = MagicMock()
    resp.choices = [choice]
    return resp


def make_http_response(payload: Any = None, status_code: int = 200, reason: str = "OK") -> MagicMock:
    """Build a mock ``requests.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.reason = reason
    resp.json.return_value = payload if payload is not None else {}
    return resp


@pytest.fixture()
def mock_llm():
    """Patch litellm.completion to return a deterministic response."""
    with patch("litellm.completion", return_value=make_mock_litellm_response()) as m:
        yield m


@pytest.fixture()
def backend():
    from src.session.storage import MemoryBackend
    return MemoryBackend()


@pytest.fixture()
def store(backend):
    from src.session.store import SessionStore
    s = SessionStore(backend)
    yield s
    s.close()


@pytest.fixture()
def app_config(tmp_path):
    """Point the app at a temp config + storage dir and reset shared state."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "config.yaml"
    config_file.write_text(f"""
storage_dir: {tmp_path}/storage
log_dir: {tmp_path}/logs
log_level: INFO
default_city: Miami
assistant:
  provider: google
  model: gemini-1.5-flash
  fallback_models: []
  temperature: 0.7
  history_turns: 4
weather:
  geocoding_url: https://geo.test/v1/search
  forecast_url: https://wx.test/v1/forecast
  timeout: 5
""")

    from src.chat.routes import _chat_sessions, _session_last_active
    from src.dashboard.deps import reset_store

    with patch("src.dashboard.deps.CONFIG_PATH", config_file), \
         patch("src.agents.llm_provider.CONFIG_PATH", config_file):
        reset_store()
        _chat_sessions.clear()
        _session_last_active.clear()
        yield config_file
        reset_store()
        _chat_sessions.clear()
        _session_last_active.clear()


@pytest_asyncio.fixture()
async def client(mock_llm, app_config):
    """Async httpx client bound to the FastAPI app with mocked LLM and temp storage."""
    from src.dashboard.app import app
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def par_loop(
    act_fn: Callable,
    review_fn: Callable,
    max_retries: int = 3,
    label: str = "PAR",
) -> Any:
    """Plan-Act-Review loop with auto-retry.

    act_fn: async callable that returns a result
    review_fn: callable(result) -> (ok: bool, diagnosis: str)
    """
    last_diagnosis = ""
    for attempt in range(1, max_retries + 1):
        result = await act_fn()
        ok, diagnosis = review_fn(result)
        if ok:
            return result
        last_diagnosis = f"[{label} attempt {attempt}/{max_retries}] {diagnosis}"
    raise AssertionError(f"PAR loop failed: {last_diagnosis}")
