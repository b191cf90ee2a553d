"""Base class for reply delivery."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class DeliveryResult:
    """Outcome of a successful delivery."""

    message_id: str | None
    status: int = 200
    raw: dict[str, Any] = field(default_factory=dict)


class DeliveryAction(ABC):
    """
    Abstract "post a reply into a channel" operation.

    Implementations raise DeliveryError for any non-success outcome.
    """

    name: str = "base"

    @abstractmethod
    async def send(self, channel_id: str, message: str) -> DeliveryResult:
        """
        Post a message into a channel.

        Args:
            channel_id: Channel to post into.
            message: Message content.

        Returns:
            The delivery result.

        Raises:
            DeliveryError: If the upstream rejects the message.
        """
        pass

    async def close(self) -> None:
        """Release any underlying resources."""
        pass
