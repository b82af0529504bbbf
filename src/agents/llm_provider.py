"""LLM provider abstraction using LiteLLM.

The assistant defaults to Google Gemini but any LiteLLM provider works.
Provider, model and fallback models are configured in config.yaml under the
``assistant:`` section; API keys come from environment variables following
LiteLLM conventions.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from src.common.config import PROVIDER_KEY_VARS

logger = logging.getLogger("rovi.agents.llm")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

_PROVIDER_MODEL_DEFAULTS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini/gemini-1.5-flash",
    "azure": "azure/gpt-4o-mini",
    "ollama": "ollama/llama3",
}

PLACEHOLDER_REPLY = (
    "[Assistant API key not configured] This is a placeholder response. "
    "To enable AI features, set {key_var} in your environment."
)


class LLMError(RuntimeError):
    """Raised when no configured model could produce a completion."""


def _load_assistant_config() -> dict[str, Any]:
    """Load assistant config from config.yaml over built-in defaults."""
    cfg: dict[str, Any] = {
        "provider": "google",
        "model": "gemini-1.5-flash",
        "fallback_models": [],
        "api_base": None,
        "temperature": 0.7,
    }

    if CONFIG_PATH.is_file():
        try:
            raw = yaml.safe_load(CONFIG_PATH.read_text(encoding="utf-8")) or {}
            assistant = raw.get("assistant", {}) or {}
            for key in ("provider", "model", "fallback_models", "api_base", "temperature"):
                if key in assistant and assistant[key] is not None:
                    cfg[key] = assistant[key]
        except Exception as exc:
            logger.warning("Failed to load config.yaml: %s", exc)

    provider = os.environ.get("ROVI_LLM_PROVIDER")
    if provider:
        cfg["provider"] = provider
    model = os.environ.get("ROVI_LLM_MODEL")
    if model:
        cfg["model"] = model
    return cfg


def _resolve_model(provider: str, model: str) -> str:
    """Build the LiteLLM model string from provider + model name."""
    if not model:
        return _PROVIDER_MODEL_DEFAULTS.get(provider, "gemini/gemini-1.5-flash")

    if provider == "ollama" and not model.startswith("ollama/"):
        model = f"ollama/{model}"
    elif provider == "azure" and not model.startswith("azure/"):
        model = f"azure/{model}"
    elif provider == "google" and not model.startswith("gemini/"):
        model = f"gemini/{model}"

    return model


def candidate_models(cfg: dict[str, Any]) -> list[str]:
    """Primary model followed by fallbacks, resolved and de-duplicated."""
    provider = cfg.get("provider", "google")
    names = [cfg.get("model", "")] + list(cfg.get("fallback_models") or [])
    models: list[str] = []
    for name in names:
        resolved = _resolve_model(provider, name)
        if resolved not in models:
            models.append(resolved)
    return models


def missing_api_key(provider: str) -> str | None:
    """Name of the unset API-key variable for *provider*, if any."""
    key_var = PROVIDER_KEY_VARS.get(provider)
    if key_var and not os.environ.get(key_var):
        return key_var
    return None


def complete(messages: list[dict[str, str]], temperature: float | None = None) -> str:
    """Send messages to the configured LLM provider. Returns response text.

    Models are tried in order; a model the provider does not know is skipped
    in favour of the next one, any other failure propagates.  Without an API
    key a placeholder string is returned instead of calling out.
    """
    import litellm

    cfg = _load_assistant_config()
    provider = cfg.get("provider", "google")

    key_var = missing_api_key(provider)
    if key_var:
        logger.warning("%s is not set. Returning placeholder response.", key_var)
        return PLACEHOLDER_REPLY.format(key_var=key_var)

    last_error = ""
    for model in candidate_models(cfg):
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": cfg.get("temperature", 0.7) if temperature is None else temperature,
        }
        if cfg.get("api_base"):
            kwargs["api_base"] = cfg["api_base"]

        logger.info("LLM call: model=%s, msgs=%d", model, len(messages))

        litellm.drop_params = True
        try:
            response = litellm.completion(**kwargs)
        except litellm.NotFoundError as exc:
            logger.info("Model %s not found, trying next", model)
            last_error = str(exc)
            continue

        content = response.choices[0].message.content or "No response."
        logger.info("LLM response: %d chars from %s", len(content), model)
        return content

    raise LLMError(f"All configured models failed. {last_error or 'Check your API key and available models.'}")


def ask(prompt: str) -> str:
    """Single-turn convenience wrapper around :func:`complete`."""
    return complete([{"role": "user", "content": prompt}])
