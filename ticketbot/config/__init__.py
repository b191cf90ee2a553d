"""Configuration module for TicketBot."""

from ticketbot.config.loader import load_config, save_config, get_config_path
from ticketbot.config.schema import Config, DestinationConfig

__all__ = ["Config", "DestinationConfig", "load_config", "save_config", "get_config_path"]
