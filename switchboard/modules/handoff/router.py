"""
Handoff Router: entry point of the handoff core for every inbound message.
Classifies the sender as agent or user and dispatches to the command
interpreter or the user state machine. Turns from the same sender are
serialized; anything not handled falls through to the bot.
"""

import asyncio
import logging
import weakref

from switchboard.config import Settings, get_settings
from switchboard.modules.directory.base import UserDirectory
from switchboard.modules.handoff.commands import CommandInterpreter
from switchboard.modules.handoff.errors import InvariantViolation
from switchboard.modules.handoff.user_flow import UserFlow
from switchboard.modules.messaging.providers.base import IncomingMessage
from switchboard.modules.messaging.sender import Delivery

logger = logging.getLogger(__name__)

AGENT = "agent"
USER = "user"


def classify_sender(sender_id: str, agent_prefix: str = "agent") -> str:
    """Agents are recognised by an id prefix. This is a naming convention, not authentication."""
    if sender_id and sender_id.lower().startswith(agent_prefix.lower()):
        return AGENT
    return USER


class HandoffRouter:

    def __init__(self, directory: UserDirectory, delivery: Delivery, settings: Settings | None = None):
        settings = settings or get_settings()
        self.directory = directory
        self.delivery = delivery
        self.agent_prefix = settings.agent_id_prefix
        self.user_flow = UserFlow(
            directory,
            delivery,
            queue_keyword=settings.queue_keyword,
            disconnect_keyword=settings.disconnect_keyword,
        )
        self.commands = CommandInterpreter(
            directory,
            delivery,
            command_marker=settings.command_marker,
            history_limit=settings.history_limit,
            claim_attempts=settings.queue_claim_attempts,
        )
        # Held only while a turn runs; idle senders drop out of the map.
        self._turn_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def handle(self, msg: IncomingMessage) -> bool:
        """Process one turn. Returns True if the handoff core consumed the message."""
        if not msg.text:
            return False

        role = classify_sender(msg.sender_id, self.agent_prefix)
        lock = self._turn_locks.setdefault(msg.sender_id, asyncio.Lock())
        async with lock:
            try:
                if role == AGENT:
                    return await self.commands.handle(msg)
                return await self.user_flow.handle(msg)
            except InvariantViolation as e:
                logger.error("Turn from %s aborted: %s", msg.sender_id, e)
                return True
