"""
FastAPI application factory for the TicketBot control API.

Provides:
- Application creation around an existing BotManager
- Router registration
- A server runner for use alongside the bot
"""

import asyncio

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from loguru import logger

from ticketbot import __version__
from ticketbot.server.bot_manager import BotManager
from ticketbot.server.routers import control_router


def create_app(bot_manager: BotManager) -> FastAPI:
    """
    Create and configure the FastAPI application.

    The bot's lifecycle is owned by the caller; the app only drives it.

    Args:
        bot_manager: The bot to control.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="TicketBot Control API",
        description="Pause, resume and inspect the ticket auto-reply bot",
        version=__version__,
    )
    app.state.bot_manager = bot_manager

    app.include_router(control_router, prefix="/api", tags=["Control"])

    @app.get("/health")
    async def health_check():
        """Lightweight health check."""
        return JSONResponse({"status": "ok"})

    return app


async def serve(bot_manager: BotManager, host: str, port: int) -> None:
    """Serve the control API until the bot requests shutdown."""
    import uvicorn

    app = create_app(bot_manager)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    logger.info(f"Control API listening on http://{host}:{port}")

    serve_task = asyncio.create_task(server.serve())
    await bot_manager.wait_for_shutdown()
    server.should_exit = True
    await serve_task
