"""
Agent command interpreter: '#connect', '#disconnect', '#history', '#list', '#help'.
Agent text without the marker is relayed to the connected user.
"""

import logging

from switchboard.models.handoff import HandoffUser
from switchboard.modules.directory.base import UserDirectory
from switchboard.modules.handoff import templates
from switchboard.modules.handoff.queue import by_wait_time, claim_longest_waiting
from switchboard.modules.handoff.user_flow import connect_user_to_bot
from switchboard.modules.messaging.providers.base import IncomingMessage
from switchboard.modules.messaging.sender import Delivery

logger = logging.getLogger(__name__)


class CommandInterpreter:

    def __init__(
        self,
        directory: UserDirectory,
        delivery: Delivery,
        command_marker: str = "#",
        history_limit: int = 100,
        claim_attempts: int = 3,
    ):
        self.directory = directory
        self.delivery = delivery
        self.command_marker = command_marker.lower()
        self.history_limit = history_limit
        self.claim_attempts = claim_attempts
        self._commands = {
            "connect": self._connect,
            "disconnect": self._disconnect,
            "history": self._history,
            "list": self._list,
            "help": self._help,
        }

    def parse_command(self, text: str) -> str | None:
        """Return the lower-cased command token, or None if text is not a command."""
        text = text.strip()
        if not text.lower().startswith(self.command_marker):
            return None
        tokens = text[len(self.command_marker):].split(maxsplit=1)
        return tokens[0].lower() if tokens else ""

    async def handle(self, msg: IncomingMessage) -> bool:
        """Run an agent message. Returns False when it should fall through to the bot."""
        connected_user = await self.directory.find_by_agent(msg.address)
        command = self.parse_command(msg.text)

        if command is None:
            if connected_user:
                await self.delivery.send(connected_user.address, msg.text)
                return True
            return False

        handler = self._commands.get(command)
        if handler is None:
            logger.info("Unknown command %r from agent %s", command, msg.sender_id)
            return False

        logger.info("Agent %s ran %s%s", msg.sender_id, self.command_marker, command)
        await handler(msg, connected_user)
        return True

    async def _connect(self, msg: IncomingMessage, connected_user: HandoffUser | None) -> None:
        agent = msg.address
        if connected_user:
            await self.delivery.send(agent, templates.ALREADY_CONNECTED)
            return

        user = await claim_longest_waiting(self.directory, agent, self.claim_attempts)
        if not user:
            await self.delivery.send(agent, templates.NO_QUEUED_USERS)
            return

        await self.delivery.send(agent, templates.connected_to(user.display_name))
        await self.delivery.send(user.address, templates.connected_to(msg.sender_name))

    async def _disconnect(self, msg: IncomingMessage, connected_user: HandoffUser | None) -> None:
        if not connected_user:
            await self.delivery.send(msg.address, templates.NOT_CONNECTED)
            return
        await connect_user_to_bot(self.directory, self.delivery, connected_user)

    async def _history(self, msg: IncomingMessage, connected_user: HandoffUser | None) -> None:
        agent = msg.address
        if not connected_user:
            await self.delivery.send(agent, templates.HISTORY_ONLY_WHEN_CONNECTED)
            return

        entries = connected_user.transcript
        if self.history_limit > 0:
            entries = entries[-self.history_limit:]

        await self.delivery.send(agent, templates.HISTORY_BEGIN)
        for entry in entries:
            await self.delivery.send(agent, entry.text)
        await self.delivery.send(agent, templates.HISTORY_END)

    async def _list(self, msg: IncomingMessage, connected_user: HandoffUser | None) -> None:
        queued = by_wait_time(await self.directory.list_queued())
        await self.delivery.send(msg.address, templates.queued_users([u.display_name for u in queued]))

    async def _help(self, msg: IncomingMessage, connected_user: HandoffUser | None) -> None:
        await self.delivery.send(msg.address, templates.command_help(self.command_marker))
