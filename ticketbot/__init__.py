"""
TicketBot - automatic replies to newly opened ticket channels.
"""

__version__ = "0.1.0"
__logo__ = "🎫"
