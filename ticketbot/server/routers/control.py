"""
Control routes for the TicketBot API.

Provides:
- /api/status - Bot, queue, dedup and latency status
- /api/pause - Stop replying to new tickets
- /api/resume - Resume replying
- /api/shutdown - Stop the bot process
- /api/config - Sanitized configuration summary
"""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from ticketbot.server.bot_manager import BotStateError
from ticketbot.server.dependencies import BotManagerDep, ConfigDep

router = APIRouter()


class ControlResponse(BaseModel):
    """Response from a control endpoint."""
    success: bool
    state: str
    message: str


@router.get("/status")
async def get_status(bot_manager: BotManagerDep):
    """Get comprehensive bot status."""
    return JSONResponse(bot_manager.get_status())


@router.post("/pause", response_model=ControlResponse)
async def pause(bot_manager: BotManagerDep):
    """Pause the bot; queued replies are discarded when configured to."""
    try:
        discarded = bot_manager.pause()
    except BotStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("Bot paused via control API")
    return ControlResponse(
        success=True,
        state=bot_manager.state.value,
        message=f"Bot paused, {discarded} queued replies discarded",
    )


@router.post("/resume", response_model=ControlResponse)
async def resume(bot_manager: BotManagerDep):
    """Resume a paused bot."""
    try:
        bot_manager.resume()
    except BotStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("Bot resumed via control API")
    return ControlResponse(success=True, state=bot_manager.state.value, message="Bot resumed")


@router.post("/shutdown", response_model=ControlResponse)
async def shutdown(bot_manager: BotManagerDep):
    """Request a graceful shutdown."""
    if not bot_manager.is_running:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bot is not running")

    bot_manager.request_shutdown()
    return ControlResponse(
        success=True,
        state=bot_manager.state.value,
        message="Shutdown requested",
    )


@router.get("/config")
async def get_config_summary(config: ConfigDep):
    """
    Get sanitized configuration summary.

    Does not expose the session token.
    """
    return JSONResponse({
        "upstream": {
            "api_base": config.upstream.api_base,
            "has_session_token": bool(config.upstream.session_token),
        },
        "rate_limit": config.rate_limit.model_dump(),
        "dedup": config.dedup.model_dump(),
        "destinations": {
            server_id: entry.model_dump()
            for server_id, entry in config.destinations.items()
        },
        "control": {"discard_on_pause": config.control.discard_on_pause},
    })
