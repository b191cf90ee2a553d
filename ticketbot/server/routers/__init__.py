"""
FastAPI routers for the TicketBot API.

- control: status, pause, resume, shutdown, config
"""

from ticketbot.server.routers.control import router as control_router

__all__ = ["control_router"]
