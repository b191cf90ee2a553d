"""Reply delivery channels."""

from ticketbot.channels.base import DeliveryAction, DeliveryResult
from ticketbot.channels.revolt import RevoltDelivery

__all__ = ["DeliveryAction", "DeliveryResult", "RevoltDelivery"]
