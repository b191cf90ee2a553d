"""Error types raised by the auto-reply pipeline."""


class TicketBotError(Exception):
    """Base class for all TicketBot errors."""


class DuplicateEvent(TicketBotError):
    """An event id was already admitted. Informational only."""

    def __init__(self, event_id: str):
        super().__init__(f"Duplicate event {event_id}")
        self.event_id = event_id


class QueueFullError(TicketBotError):
    """Submission rejected because the dispatch queue is at capacity."""

    def __init__(self, queue_length: int, max_queue_size: int):
        super().__init__(
            f"Rate limiter queue is full ({queue_length}/{max_queue_size})"
        )
        self.queue_length = queue_length
        self.max_queue_size = max_queue_size


class TaskDiscardedError(TicketBotError):
    """A queued task was flushed before it executed."""


class DeliveryError(TicketBotError):
    """The delivery action failed after the task was dequeued."""

    def __init__(self, status: int, text: str = ""):
        super().__init__(f"API Error: {status} - {text}" if text else f"API Error: {status}")
        self.status = status
        self.text = text


class ParseError(TicketBotError):
    """An inbound frame could not be parsed into an event."""
