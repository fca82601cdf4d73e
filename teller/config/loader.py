"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from teller.config.defaults import apply_missing_defaults
from teller.config.schema import Config

CONFIG_VERSION = 1


def get_config_path() -> Path:
    """Get the default configuration file path."""
    from teller.utils.helpers import get_data_path
    return get_data_path() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("Config root must be a JSON object")
            snake = convert_keys(raw)
            apply_missing_defaults(snake)
            snake["config_version"] = CONFIG_VERSION
            return Config.model_validate(snake)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to load config from {}: {}; using defaults", path, e)

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    _atomic_write_config(path, config)


def _atomic_write_config(path: Path, config: Config) -> None:
    """Atomically write config as camelCase JSON with secure permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = convert_to_camel(config.model_dump())
    tmp_name = f".{path.name}.tmp-{os.getpid()}"
    tmp_path = path.with_name(tmp_name)
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    try:
        tmp_path.chmod(0o600)
    except OSError:
        pass
    os.replace(tmp_path, path)
    try:
        path.chmod(0o600)
    except OSError:
        pass


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
