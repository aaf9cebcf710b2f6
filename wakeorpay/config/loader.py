"""Load and save the JSON config file (camelCase on disk)."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from wakeorpay.config.schema import Config


def get_config_path() -> Path:
    """Default config location."""
    return Path.home() / ".wakeorpay" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from disk, falling back to defaults.

    Values in the file win over WAKEORPAY_* environment variables; the
    environment fills in settings the file leaves out. The escalation device
    id is generated on first load and written back so that every process
    talks to the relay under the same identity.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()
    data: dict[str, Any] = {}

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            config = Config(**convert_keys(data))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")
            return Config()
    else:
        config = Config()

    if not data.get("escalation", {}).get("deviceId"):
        _persist_device_id(data, config.escalation.device_id, path)

    return config


def _persist_device_id(data: dict[str, Any], device_id: str, path: Path) -> None:
    """Add the device id to the raw file contents, leaving other keys untouched."""
    data.setdefault("escalation", {})["deviceId"] = device_id
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not save device id to {path}: {e}")
        return
    logger.info(f"Saved device id {device_id} to {path}")


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Save configuration to disk.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.

    Returns:
        The path written.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case recursively."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase recursively."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)
