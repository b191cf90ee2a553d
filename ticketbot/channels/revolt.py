"""
Revolt-compatible chat API delivery.

Posts replies with:
- Session token authentication
- A unique nonce per message
- Non-2xx responses surfaced as DeliveryError
"""

import random
import string
import time

import httpx
from loguru import logger

from ticketbot.auto_reply.errors import DeliveryError
from ticketbot.channels.base import DeliveryAction, DeliveryResult
from ticketbot.config.schema import UpstreamConfig

_NONCE_ALPHABET = string.ascii_lowercase + string.digits


def generate_nonce() -> str:
    """Unique-enough message nonce: base-36 timestamp plus random tail."""
    millis = int(time.time() * 1000)
    stamp = ""
    while millis:
        millis, digit = divmod(millis, 36)
        stamp = _NONCE_ALPHABET[digit] + stamp
    tail = "".join(random.choices(_NONCE_ALPHABET, k=11))
    return stamp + tail


class RevoltDelivery(DeliveryAction):
    """
    Delivery over the chat HTTP API.

    Configuration (via UpstreamConfig):
    - api_base: API base URL
    - session_token: Session credential obtained elsewhere
    - timeout_seconds: Per-request timeout
    """

    name = "revolt"

    def __init__(self, config: UpstreamConfig, client: httpx.AsyncClient | None = None):
        self.api_base = config.api_base.rstrip("/")
        self.session_token = config.session_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def send(self, channel_id: str, message: str) -> DeliveryResult:
        """Post a message into a channel."""
        url = f"{self.api_base}/channels/{channel_id}/messages"
        payload = {"content": message, "nonce": generate_nonce(), "replies": []}

        logger.info(f"Sending message to {channel_id}: {message}")
        try:
            response = await self._client.post(
                url,
                json=payload,
                headers={"x-session-token": self.session_token},
            )
        except httpx.TimeoutException as e:
            raise DeliveryError(0, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise DeliveryError(0, str(e)) from e

        logger.debug(f"API Response: {response.status_code} {response.reason_phrase}")

        if not response.is_success:
            raise DeliveryError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            data = {}

        message_id = data.get("_id") if isinstance(data, dict) else None
        if message_id:
            logger.info(f"Message sent successfully with ID: {message_id}")
        else:
            logger.warning("Message sent but no ID returned")

        return DeliveryResult(
            message_id=message_id,
            status=response.status_code,
            raw=data if isinstance(data, dict) else {},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
