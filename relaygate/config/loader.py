"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from relaygate.config.schema import Config

# Plain environment names kept from earlier single-file deployments.
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "SHELLY_API_KEY": ("upstream", "api_key"),
    "SHELLY_BASE_URL": ("upstream", "base_url"),
    "TOKEN_SECRET": ("tokens", "secret"),
    "TIMEZONE": ("gateway", "timezone"),
    "PORT": ("gateway", "port"),
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".relaygate" / "config.json"


def get_data_dir() -> Path:
    """Get the relaygate data directory."""
    path = Path.home() / ".relaygate"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object, with legacy environment overrides applied.
    """
    path = config_path or get_config_path()

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path) as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to regenerate defaults."
            ) from e
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must be a JSON object: {path}")
        data = convert_keys(raw)

    _apply_legacy_env_vars(data)
    try:
        return Config(**data)
    except ValueError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _apply_legacy_env_vars(data: dict[str, Any]) -> None:
    """Overlay SHELLY_API_KEY, TOKEN_SECRET, ... onto the loaded data (env wins over file)."""
    for env_name, (section, field) in LEGACY_ENV_VARS.items():
        value = os.environ.get(env_name)
        if value is None or not value.strip():
            continue
        block = data.setdefault(section, {})
        if isinstance(block, dict):
            block[field] = value.strip()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    from relaygate.config.access import clear_config_cache

    clear_config_cache(config_path=path)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic.
    Keys directly under targets are preserved (they are target names, e.g. scala-door)."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = camel_to_snake(k)
            if new_k == "targets" and isinstance(v, dict):
                result["targets"] = {tk: convert_keys(tv) for tk, tv in v.items()}
            else:
                result[new_k] = convert_keys(v)
        return result
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase, preserving target names."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = snake_to_camel(k)
            if new_k == "targets" and isinstance(v, dict):
                result["targets"] = {tk: convert_to_camel(tv) for tk, tv in v.items()}
            else:
                result[new_k] = convert_to_camel(v)
        return result
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
