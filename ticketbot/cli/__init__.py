"""Command-line interface for TicketBot."""
