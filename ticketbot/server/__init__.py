"""
Bot lifecycle and control API.

Provides:
- BotManager: owns the auto-reply pipeline
- create_app: FastAPI control surface
"""

from ticketbot.server.bot_manager import BotManager, BotState, BotStateError

__all__ = ["BotManager", "BotState", "BotStateError"]
