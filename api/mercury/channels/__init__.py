"""Base types for outbound messaging channel adapters."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChannelPayload:
    """Represents the HTTP request a channel adapter wants sent."""
    method: str
    url: str
    headers: dict[str, str]
    body: str  # JSON string
