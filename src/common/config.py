"""Load and validate Rovi configuration from config.yaml."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("rovi")

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "config.yaml"

# Provider -> environment variable holding its API key (LiteLLM conventions).
PROVIDER_KEY_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GEMINI_API_KEY",
    "azure": "AZURE_API_KEY",
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file, with env-var overrides.

    Environment variable overrides (if set):
        ROVI_STORAGE_DIR    -> storage_dir
        ROVI_LOG_DIR        -> log_dir
        ROVI_DEFAULT_CITY   -> default_city
        ROVI_LLM_PROVIDER   -> assistant.provider
        ROVI_LLM_MODEL      -> assistant.model
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as fh:
        cfg: dict[str, Any] = yaml.safe_load(fh) or {}

    _env_override(cfg, "ROVI_STORAGE_DIR", "storage_dir")
    _env_override(cfg, "ROVI_LOG_DIR", "log_dir")
    _env_override(cfg, "ROVI_DEFAULT_CITY", "default_city")
    _env_override(cfg, "ROVI_LLM_PROVIDER", "assistant", "provider")
    _env_override(cfg, "ROVI_LLM_MODEL", "assistant", "model")

    _validate(cfg)
    return cfg


def _env_override(cfg: dict, env_key: str, *keys: str) -> None:
    """Override a nested config value from an environment variable."""
    val = os.environ.get(env_key)
    if val is None:
        return
    target = cfg
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = val


def _validate(cfg: dict[str, Any]) -> None:
    """Check required keys and create the storage directory."""
    if "storage_dir" not in cfg:
        raise ValueError("Config is missing 'storage_dir'")

    storage_dir = resolve_storage_dir(cfg)
    storage_dir.mkdir(parents=True, exist_ok=True)

    provider = cfg.get("assistant", {}).get("provider", "google")
    key_var = PROVIDER_KEY_VARS.get(provider)
    if key_var and not os.environ.get(key_var):
        logger.warning("%s is not set; chat and quotes will return placeholder text", key_var)


def resolve_storage_dir(cfg: dict[str, Any]) -> Path:
    """Return the absolute storage directory with ``~`` expanded."""
    return Path(os.path.expanduser(str(cfg["storage_dir"])))


def setup_logging(cfg: dict[str, Any]) -> None:
    """Configure root logging: stderr + rotating file."""
    log_dir = Path(os.path.expanduser(str(cfg.get("log_dir", "logs"))))
    log_dir.mkdir(parents=True, exist_ok=True)

    from logging.handlers import RotatingFileHandler

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root = logging.getLogger("rovi")
    root.setLevel(getattr(logging, cfg.get("log_level", "INFO")))

    # stderr
    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    root.addHandler(sh)

    # rotating file
    fh = RotatingFileHandler(log_dir / "rovi.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)
