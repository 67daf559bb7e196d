"""Configuration loading utilities."""

import json
import os
import re
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from loguru import logger

from ff1agent.config.schema import Config, DeviceConfig, ModelConfig

# Load .env into os.environ (won't overwrite existing env vars)
load_dotenv(override=False)

LOCAL_CONFIG_NAME = "config.json"


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".ff1" / "config.json"


def find_config_path() -> Path:
    """A ``config.json`` in the working directory takes precedence over the user file."""
    local = Path.cwd() / LOCAL_CONFIG_NAME
    if local.exists():
        return local
    return get_config_path()


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, then apply env-var overrides.

    Priority (highest → lowest):
        1. FF1_* environment variables / .env
        2. ./config.json, then ~/.ff1/config.json
        3. Built-in defaults
    """
    path = config_path or find_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            data = _migrate_config(data)
            config = Config.model_validate(convert_keys(data))
            logger.debug(f"Loaded config from {path}")
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")
            config = Config()
    else:
        config = Config()

    _apply_env_overrides(config)
    return config


# ---------------------------------------------------------------------------
# Flat env-var overrides
# ---------------------------------------------------------------------------

_MODEL_ENV_RE = re.compile(r"^FF1_([A-Z0-9]+)_API_(KEY|BASE)$")


def _apply_env_overrides(config: Config) -> None:
    """Apply flat FF1_* env vars on top of the loaded config."""

    if val := os.environ.get("FF1_MODEL"):
        config.default_model = val

    # --- Per-model credentials: FF1_GROK_API_KEY, FF1_GPT_API_BASE, ... ---
    for env_key, val in os.environ.items():
        match = _MODEL_ENV_RE.match(env_key)
        if not match or not val:
            continue
        name = match.group(1).lower()
        if name in ("feed", "device"):
            continue
        model = config.models.setdefault(name, ModelConfig())
        if match.group(2) == "KEY":
            model.api_key = val
        else:
            model.base_url = val

    if val := os.environ.get("FF1_DEFAULT_DURATION"):
        config.default_duration = int(val)

    # --- Feed ---
    if val := os.environ.get("FF1_FEED_BASE_URLS"):
        config.feed.base_urls = [u.strip().rstrip("/") for u in val.split(",") if u.strip()]
    if val := os.environ.get("FF1_FEED_API_KEY"):
        config.feed.api_key = val

    # --- Signing ---
    if val := os.environ.get("FF1_PLAYLIST_PRIVATE_KEY"):
        config.playlist.private_key = val

    # --- Indexer ---
    if val := os.environ.get("FF1_INDEXER_ENDPOINT"):
        config.indexer.endpoint = val

    # --- Single device shortcut ---
    if val := os.environ.get("FF1_DEVICE_HOST"):
        if not any(d.host == val for d in config.ff1_devices.devices):
            config.ff1_devices.devices.append(DeviceConfig(
                host=val,
                name=os.environ.get("FF1_DEVICE_NAME", ""),
                api_key=os.environ.get("FF1_DEVICE_API_KEY", ""),
            ))


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    # Convert to camelCase format
    data = config.model_dump()
    data = convert_to_camel(data)

    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def create_sample_config(config_path: Path | None = None) -> Path:
    """Write a starter config with one placeholder device and the default models."""
    config = Config()
    config.ff1_devices.devices.append(
        DeviceConfig(host="http://ff1-device.local:1111", name="Living Room")
    )
    return save_config(config, config_path)


def validate_config(config: Config, model_name: str | None = None) -> list[str]:
    """Return a list of problems that would stop a natural-language run."""
    problems: list[str] = []
    name = model_name or config.default_model
    model = config.get_model(name)
    if model is None:
        available = ", ".join(sorted(config.models)) or "none"
        problems.append(f'Model "{name}" is not configured. Available models: {available}')
        return problems
    if not model.api_key:
        problems.append(f'API key missing for model "{name}" (set FF1_{name.upper()}_API_KEY)')
    if not model.model:
        problems.append(f'Model id missing for "{name}"')
    if not model.supports_function_calling:
        problems.append(f'Model "{name}" does not support function calling (required)')
    if config.default_duration < 1:
        problems.append("defaultDuration must be at least 1 second")
    return problems


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    # feed.servers used to be a top-level feedServers list
    if "feedServers" in data:
        feed = data.setdefault("feed", {})
        feed.setdefault("servers", data.pop("feedServers"))
    return data


# Keys whose acronyms the generic converter would split badly
_SNAKE_ALIASES = {
    "baseURL": "base_url",
    "baseURLs": "base_urls",
    "topicID": "topic_id",
}
_CAMEL_ALIASES = {v: k for k, v in _SNAKE_ALIASES.items()}


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    if name in _SNAKE_ALIASES:
        return _SNAKE_ALIASES[name]
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    if name in _CAMEL_ALIASES:
        return _CAMEL_ALIASES[name]
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
