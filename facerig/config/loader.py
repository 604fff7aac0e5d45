"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from facerig.config.schema import FaceRigConfig

# Values under these keys are channel names and keep their casing.
_PRESERVE_KEYS = {"gains"}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".facerig" / "config.json"


def load_config(config_path: Path | None = None) -> FaceRigConfig:
    """
    Load configuration from file or fall back to defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root must be an object")
            return FaceRigConfig(**convert_keys(data))
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.warning(f"config.loader.load_config path={path} error={e}")
            logger.warning("config.loader.load_config using defaults")

    return FaceRigConfig()


def save_config(config: FaceRigConfig, config_path: Path | None = None) -> Path:
    """
    Save configuration to file in camelCase form.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"config.loader.save_config path={path}")
    return path


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {
            camel_to_snake(k): v if camel_to_snake(k) in _PRESERVE_KEYS else convert_keys(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {
            snake_to_camel(k): v if k in _PRESERVE_KEYS else convert_to_camel(v)
            for k, v in data.items()
        }
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
