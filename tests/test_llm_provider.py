from __future__ import annotations

from unittest.mock import patch

import litellm
import pytest

from src.agents import llm_provider
from src.agents.llm_provider import (
    LLMError,
    _resolve_model,
    ask,
    candidate_models,
    complete,
)
from tests.conftest import make_mock_litellm_response


def _not_found(model: str) -> litellm.NotFoundError:
    return litellm.NotFoundError(message=f"{model} not found", model=model, llm_provider="gemini")


@pytest.fixture()
def assistant_config(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "assistant:\n"
        "  provider: google\n"
        "  model: gemini-1.5-flash\n"
        "  fallback_models: [gemini-1.5-pro, gemini-pro]\n"
        "  temperature: 0.3\n"
    )
    with patch.object(llm_provider, "CONFIG_PATH", config_file):
        yield config_file


class TestModelResolution:
    def test_google_prefix(self) -> None:
        assert _resolve_model("google", "gemini-1.5-flash") == "gemini/gemini-1.5-flash"
        assert _resolve_model("google", "gemini/gemini-pro") == "gemini/gemini-pro"

    def test_default_when_blank(self) -> None:
        assert _resolve_model("openai", "") == "gpt-4o-mini"

    def test_candidates_deduplicated(self) -> None:
        cfg = {"provider": "google", "model": "gemini-pro", "fallback_models": ["gemini/gemini-pro", "gemini-1.5-pro"]}
        assert candidate_models(cfg) == ["gemini/gemini-pro", "gemini/gemini-1.5-pro"]


class TestComplete:
    def test_first_model_answers(self, assistant_config, mock_llm) -> None:
        assert ask("hello") == "Test response"
        kwargs = mock_llm.call_args.kwargs
        assert kwargs["model"] == "gemini/gemini-1.5-flash"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]

    def test_falls_back_on_unknown_model(self, assistant_config) -> None:
        responses = [_not_found("gemini/gemini-1.5-flash"), make_mock_litellm_response("from pro")]
        with patch("litellm.completion", side_effect=responses) as m:
            assert complete([{"role": "user", "content": "x"}]) == "from pro"
        assert [c.kwargs["model"] for c in m.call_args_list] == [
            "gemini/gemini-1.5-flash",
            "gemini/gemini-1.5-pro",
        ]

    def test_all_models_missing(self, assistant_config) -> None:
        with patch("litellm.completion", side_effect=_not_found("any")):
            with pytest.raises(LLMError):
                ask("x")

    def test_other_errors_propagate(self, assistant_config) -> None:
        with patch("litellm.completion", side_effect=RuntimeError("boom")) as m:
            with pytest.raises(RuntimeError):
                ask("x")
        assert m.call_count == 1

    def test_empty_content(self, assistant_config) -> None:
        with patch("litellm.completion", return_value=make_mock_litellm_response(None)):
            assert ask("x") == "No response."

    def test_placeholder_without_key(self, assistant_config, monkeypatch) -> None:
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with patch("litellm.completion") as m:
            reply = ask("x")
        assert "GEMINI_API_KEY" in reply
        m.assert_not_called()

    def test_env_overrides_model(self, assistant_config, mock_llm, monkeypatch) -> None:
        monkeypatch.setenv("ROVI_LLM_MODEL", "gemini-2.0-flash-exp")
        ask("x")
        assert mock_llm.call_args.kwargs["model"] == "gemini/gemini-2.0-flash-exp"
