"""Event types consumed by the auto-reply pipeline."""

import json
import time
from dataclasses import dataclass, field
from typing import Any

from ticketbot.auto_reply.errors import ParseError

CHANNEL_CREATE = "ChannelCreate"


@dataclass(frozen=True)
class TicketEvent:
    """A newly created ticket channel."""
    id: str  # Unique per creation event
    destination: str  # Channel the reply is posted into
    server_id: str  # Community the channel belongs to
    label: str  # Channel name
    received_at: float = field(default_factory=time.time)


def parse_channel_create(frame: str | bytes | dict[str, Any]) -> TicketEvent | None:
    """
    Parse a raw feed frame.

    Args:
        frame: JSON text or an already-decoded mapping.

    Returns:
        A TicketEvent for channel-create frames, None for any other type.

    Raises:
        ParseError: If the frame is not valid JSON or lacks required fields.
    """
    if isinstance(frame, (str, bytes)):
        try:
            data = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid JSON frame: {e}") from e
    else:
        data = frame

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    if data.get("type") != CHANNEL_CREATE:
        return None

    channel_id = data.get("_id")
    server_id = data.get("server")
    if not channel_id or not server_id:
        raise ParseError("ChannelCreate frame is missing '_id' or 'server'")

    name = data.get("name")
    return TicketEvent(
        id=str(channel_id),
        destination=str(channel_id),
        server_id=str(server_id),
        label=str(name) if name is not None else "",
    )
