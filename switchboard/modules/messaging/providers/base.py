"""
Base interface for messaging providers.
Every channel implementation conforms to this interface.
The rest of the app works with IncomingMessage and never touches provider-specific formats.
"""

from dataclasses import dataclass, field
from typing import Protocol

from switchboard.models.handoff import ConversationAddress


class DeliveryFailure(Exception):
    """Raised by a provider when a message could not be handed to the channel."""


@dataclass
class IncomingMessage:
    """Normalized message format, provider-agnostic."""
    address: ConversationAddress
    message_id: str = ""
    text: str | None = None
    raw: dict = field(default_factory=dict)

    @property
    def sender_id(self) -> str:
        return self.address.user_id

    @property
    def sender_name(self) -> str:
        return self.address.user_name or self.address.user_id


class MessagingProvider(Protocol):
    """Interface that the direct and Telegram providers implement."""

    async def parse_webhook(self, request) -> list[IncomingMessage]:
        """Parse incoming webhook request into normalized messages."""
        ...

    async def send_text(self, address: ConversationAddress, text: str) -> dict:
        """Send text to a conversation. Raises DeliveryFailure when the channel rejects it."""
        ...
