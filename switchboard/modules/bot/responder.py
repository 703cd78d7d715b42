"""
Bot: answers every message the handoff core lets through.
Uses Claude when an Anthropic key is configured, otherwise echoes.
"""

import logging

from anthropic import AsyncAnthropic

from switchboard.config import Settings, get_settings
from switchboard.modules.messaging.providers.base import IncomingMessage

logger = logging.getLogger(__name__)


def echo(text: str) -> str:
    return f"Echo: {text}"


class BotResponder:

    def __init__(self, settings: Settings | None = None, client: AsyncAnthropic | None = None):
        self.settings = settings or get_settings()
        self.client = client
        if self.client is None and self.settings.anthropic_api_key:
            self.client = AsyncAnthropic(api_key=self.settings.anthropic_api_key)

    async def respond(self, msg: IncomingMessage) -> str:
        if self.client is None:
            return echo(msg.text)

        try:
            response = await self.client.messages.create(
                model=self.settings.anthropic_model,
                max_tokens=400,
                system=self.settings.bot_system_prompt,
                messages=[{"role": "user", "content": msg.text}],
            )
            return response.content[0].text.strip()
        except Exception as e:
            logger.error("Bot error for %s: %s", msg.sender_id, e)
            return echo(msg.text)
