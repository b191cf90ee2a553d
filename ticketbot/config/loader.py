"""Configuration loading and saving."""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from ticketbot.config.schema import Config


def get_data_dir() -> Path:
    """Get the TicketBot data directory (~/.ticketbot), creating it if needed."""
    path = Path.home() / ".ticketbot"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_data_dir() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from a JSON file, layered over environment variables.

    Args:
        config_path: Optional config file path. Uses the default if not given.

    Returns:
        Loaded configuration, or defaults if the file is missing or invalid.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            data = json.loads(path.read_text())
            return Config(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses the default if not given.

    Returns:
        The path written.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(), indent=2))
    return path
