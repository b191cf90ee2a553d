"""Configuration schema using Pydantic."""

from typing import Literal
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UpstreamConfig(BaseModel):
    """Chat API the replies are posted to."""
    api_base: str = "https://workers.api.onech.at"
    session_token: str = ""  # Opaque session credential, sent as x-session-token
    timeout_seconds: float = 10.0  # Per-request timeout for a delivery


class RateLimitConfig(BaseModel):
    """Token bucket and queue limits for outgoing replies."""
    refill_rate: float = Field(default=8, gt=0)  # Tokens per second
    bucket_size: int = Field(default=15, ge=1)  # Burst capacity
    token_cost: int = Field(default=1, ge=1)  # Tokens per message
    max_queue_size: int = Field(default=100, ge=1)
    poll_interval_ms: int = Field(default=50, gt=0)  # Wait between token checks


class DedupConfig(BaseModel):
    """Duplicate suppression memory limits."""
    expiration_hours: float = 24
    cleanup_interval_minutes: float = 60
    max_entries: int = Field(default=100_000, ge=1)


class DestinationConfig(BaseModel):
    """Reply policy for one monitored server."""
    name: str = ""
    priority: bool = False
    delay_min_ms: float = Field(default=0, ge=0)
    delay_max_ms: float = Field(default=0, ge=0)
    message: Literal["ticket_number", "random_suffix", "template"] = "ticket_number"
    suffixes: list[str] = Field(default_factory=list)  # Used by random_suffix
    template: str = ""  # Used by template; fields: {ticket}, {label}, {name}

    @model_validator(mode="after")
    def _check_delay_range(self) -> "DestinationConfig":
        if self.delay_max_ms < self.delay_min_ms:
            raise ValueError("delay_max_ms must be >= delay_min_ms")
        return self


DEFAULT_SUFFIXES = ["..2", "..3", "..4", "..5"]


def _default_destinations() -> dict[str, DestinationConfig]:
    return {
        "01K7A7CNSMC5XPTJ7J36H9XKGR": DestinationConfig(name="Foodcity"),
        "01JY5290SHY9EV3CECD5CNEMHV": DestinationConfig(name="Sams"),
        "01K7A7TBZ4SJKNXX47H9MHF6V7": DestinationConfig(name="TGC"),
        "01JDPY161J6H6B1KBV74QWKCDM": DestinationConfig(
            name="VIP",
            priority=True,
            delay_min_ms=200,
            delay_max_ms=200,
            message="random_suffix",
            suffixes=list(DEFAULT_SUFFIXES),
        ),
        "01KFC6QZDVV9H9V1GMR5XSST4G": DestinationConfig(
            name="snackhack",
            message="random_suffix",
            suffixes=list(DEFAULT_SUFFIXES),
        ),
        "01JDKAFHS1W2BTPSS9YDB6WNEP": DestinationConfig(
            name="goonery",
            priority=True,
            delay_min_ms=180,
            delay_max_ms=200,
            message="random_suffix",
            suffixes=list(DEFAULT_SUFFIXES),
        ),
        "01JZ61Q8WN45VQ0ZMCM59T10ZX": DestinationConfig(
            name="Exclusive Orders",
            message="random_suffix",
            suffixes=list(DEFAULT_SUFFIXES),
        ),
    }


class ControlConfig(BaseModel):
    """Control API and pause behaviour."""
    host: str = "127.0.0.1"
    port: int = 18800
    discard_on_pause: bool = True  # Flush queued replies when pausing


class Config(BaseSettings):
    """Root configuration for TicketBot."""
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    destinations: dict[str, DestinationConfig] = Field(default_factory=_default_destinations)
    control: ControlConfig = Field(default_factory=ControlConfig)

    model_config = SettingsConfigDict(
        env_prefix="TICKETBOT_",
        env_nested_delimiter="__",
    )

    @property
    def target_ids(self) -> list[str]:
        """Server ids whose new channels get a reply."""
        return list(self.destinations)

    def destination_name(self, server_id: str) -> str:
        """Get the configured display name for a server id."""
        entry = self.destinations.get(server_id)
        return entry.name if entry and entry.name else "Unknown"
