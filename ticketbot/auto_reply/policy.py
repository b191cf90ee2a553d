"""
Per-destination reply policy.

Maps a destination id and a channel label to the reply message, its
priority class and the delay range injected before dispatch.
"""

import random
import re
from dataclasses import dataclass

from ticketbot.config.schema import DestinationConfig

_TICKET_NUMBER_RE = re.compile(r"\d+")

UNKNOWN_DESTINATION = "Unknown"


def extract_ticket_number(label: str) -> str:
    """Return the first run of digits in `label`, or the label itself."""
    match = _TICKET_NUMBER_RE.search(label)
    return match.group(0) if match else label


@dataclass(frozen=True)
class ResolvedReply:
    """What to send for one event, and how."""
    destination_name: str
    message: str
    priority: bool = False
    delay_range_ms: tuple[float, float] = (0.0, 0.0)


class DestinationPolicy:
    """
    Static lookup table of destination policies.

    Unknown destinations fall back to a non-priority, zero-delay reply
    carrying the ticket number.
    """

    def __init__(
        self,
        destinations: dict[str, DestinationConfig] | None = None,
        rng: random.Random | None = None,
    ):
        self._destinations = dict(destinations or {})
        self._rng = rng or random.Random()

    @property
    def destination_ids(self) -> list[str]:
        """Configured destination ids."""
        return list(self._destinations)

    def name_for(self, destination_id: str) -> str:
        """Display name for a destination."""
        entry = self._destinations.get(destination_id)
        return entry.name if entry and entry.name else UNKNOWN_DESTINATION

    def resolve(self, destination_id: str, label: str) -> ResolvedReply:
        """
        Resolve the reply for a new ticket.

        Args:
            destination_id: Id the policy table is keyed by.
            label: Channel name the ticket number is extracted from.

        Returns:
            The resolved reply.
        """
        ticket = extract_ticket_number(label)
        entry = self._destinations.get(destination_id)

        if entry is None:
            return ResolvedReply(destination_name=UNKNOWN_DESTINATION, message=ticket)

        return ResolvedReply(
            destination_name=entry.name or UNKNOWN_DESTINATION,
            message=self._render(entry, ticket, label),
            priority=entry.priority,
            delay_range_ms=(float(entry.delay_min_ms), float(entry.delay_max_ms)),
        )

    def _render(self, entry: DestinationConfig, ticket: str, label: str) -> str:
        if entry.message == "random_suffix" and entry.suffixes:
            return self._rng.choice(entry.suffixes)
        if entry.message == "template" and entry.template:
            return entry.template.format(ticket=ticket, label=label, name=entry.name)
        return ticket
