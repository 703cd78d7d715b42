"""
Public API for sending messages.
Delegates to the configured provider (direct callback or Telegram).
"""

import logging
from typing import Protocol

import httpx

from switchboard.config import get_settings
from switchboard.models.handoff import ConversationAddress
from switchboard.modules.messaging.providers.base import DeliveryFailure

logger = logging.getLogger(__name__)


def get_provider(name: str | None = None):
    name = name or get_settings().messaging_provider
    if name == "telegram":
        from switchboard.modules.messaging.providers import telegram
        return telegram
    from switchboard.modules.messaging.providers import direct
    return direct


class Delivery(Protocol):
    """Fire-and-forget outbound send used by the handoff core."""

    async def send(self, address: ConversationAddress, text: str) -> bool:
        ...


class ProviderDelivery:
    """Sends through a provider module; failures are logged, never raised."""

    def __init__(self, provider=None):
        self.provider = provider or get_provider()

    async def send(self, address: ConversationAddress, text: str) -> bool:
        try:
            await self.provider.send_text(address, text)
        except (DeliveryFailure, httpx.HTTPError) as e:
            logger.warning("Delivery to %s (%s) failed: %s", address.user_id, address.channel, e)
            return False
        except Exception as e:
            logger.exception("Unexpected delivery error to %s (%s): %s", address.user_id, address.channel, e)
            return False
        return True
