"""
User-side state machine: connected_to_bot -> queued_for_agent -> connected_to_agent -> connected_to_bot.

Transitions are committed in the directory before anybody is notified; a failed
delivery never rolls a transition back.
"""

import logging

from switchboard.models.handoff import ConversationAddress, HandoffState, HandoffUser
from switchboard.modules.directory.base import UserDirectory
from switchboard.modules.handoff import templates
from switchboard.modules.handoff.errors import InvariantViolation
from switchboard.modules.messaging.providers.base import IncomingMessage
from switchboard.modules.messaging.sender import Delivery

logger = logging.getLogger(__name__)


async def connect_user_to_bot(
    directory: UserDirectory,
    delivery: Delivery,
    user: HandoffUser,
) -> bool:
    """Return a queued or agent-connected user to the bot and notify both parties."""
    expected_state = user.state
    agent = user.agent_link
    user_address = user.address

    if not await directory.connect_to_bot(user.identity, expected_state):
        logger.info("User %s already left %s, nothing to disconnect", user.identity, expected_state.value)
        return False

    logger.info("User %s reconnected to the bot (was %s)", user.identity, expected_state.value)
    if expected_state == HandoffState.CONNECTED_TO_AGENT and agent:
        await delivery.send(agent, templates.RECONNECTED_TO_BOT)
    await delivery.send(user_address, templates.RECONNECTED_TO_BOT)
    return True


class UserFlow:

    def __init__(
        self,
        directory: UserDirectory,
        delivery: Delivery,
        queue_keyword: str = "agent",
        disconnect_keyword: str = "disconnect",
        attempts: int = 3,
    ):
        self.directory = directory
        self.delivery = delivery
        self.queue_keyword = queue_keyword.lower()
        self.disconnect_keyword = disconnect_keyword.lower()
        self.attempts = attempts

    async def handle(self, msg: IncomingMessage) -> bool:
        """Record the message and apply the transition for the user's state.

        Returns False when the message should go on to the bot.
        Agent turns run concurrently with this one, so the record is re-read
        before branching and again whenever a transition loses its compare-and-set.
        """
        user = await self.directory.find_or_create(msg.address)
        await self.directory.append_message(user, msg.sender_name, msg.text)

        keyword = msg.text.strip().lower()

        for attempt in range(1, self.attempts + 1):
            user = await self.directory.get(user.identity) or user
            handled = await self._dispatch(user, keyword, msg.text)
            if handled is not None:
                return handled
            logger.info(
                "State of %s changed during the turn, re-reading (attempt %d/%d)",
                user.identity, attempt, self.attempts,
            )

        raise InvariantViolation(f"User {user.identity} kept changing state during the turn")

    async def _dispatch(self, user: HandoffUser, keyword: str, text: str) -> bool | None:
        """Apply one transition. None means the record moved under us."""
        if user.state == HandoffState.CONNECTED_TO_AGENT:
            agent = user.agent_link
            if agent is None:
                raise InvariantViolation(f"User {user.identity} is connected to an agent but has no agent link")
            if keyword == self.disconnect_keyword:
                return True if await connect_user_to_bot(self.directory, self.delivery, user) else None
            await self._forward_to_agent(agent, text)
            return True

        if user.state == HandoffState.QUEUED_FOR_AGENT:
            if keyword == self.disconnect_keyword:
                return True if await connect_user_to_bot(self.directory, self.delivery, user) else None
            logger.info("User %s is waiting for an agent, message kept on hold", user.identity)
            return True

        if keyword == self.queue_keyword:
            queued = await self.directory.add_to_queue(user.identity)
            if not queued:
                return None
            logger.info("User %s queued for an agent at %s", user.identity, queued.queued_at)
            await self.delivery.send(user.address, templates.QUEUED)
            return True

        return False

    async def _forward_to_agent(self, agent: ConversationAddress, text: str) -> None:
        await self.delivery.send(agent, text)
