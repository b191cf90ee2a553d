"""
FastAPI dependency injection utilities.

Provides dependencies for:
- Bot manager access
- Config access
"""

from typing import TYPE_CHECKING, Annotated
from fastapi import Depends, Request

if TYPE_CHECKING:
    from ticketbot.config.schema import Config
    from ticketbot.server.bot_manager import BotManager


def get_bot_manager(request: Request) -> "BotManager":
    """Get bot manager from app state."""
    return request.app.state.bot_manager


def get_config(request: Request) -> "Config":
    """Get config from the bot manager."""
    return request.app.state.bot_manager.config


# Type aliases for dependency injection
BotManagerDep = Annotated["BotManager", Depends(get_bot_manager)]
ConfigDep = Annotated["Config", Depends(get_config)]
