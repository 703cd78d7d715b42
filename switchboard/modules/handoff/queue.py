"""
Queue policy: the longest-waiting user is served first.
"""

import logging

from switchboard.models.handoff import ConversationAddress, HandoffUser
from switchboard.modules.directory.base import UserDirectory

logger = logging.getLogger(__name__)


def longest_waiting(queued: list[HandoffUser]) -> HandoffUser | None:
    """Earliest queued_at wins; on ties the first one in input order."""
    return min(queued, key=lambda u: u.queued_at, default=None)


def by_wait_time(queued: list[HandoffUser]) -> list[HandoffUser]:
    return sorted(queued, key=lambda u: u.queued_at)


async def claim_longest_waiting(
    directory: UserDirectory,
    agent_address: ConversationAddress,
    attempts: int = 3,
) -> HandoffUser | None:
    """Select the longest-waiting user and connect the agent to it atomically.

    The directory's connect is a compare-and-set: if another agent got there
    first the selection is repeated, up to `attempts` times.
    """
    for attempt in range(1, attempts + 1):
        candidate = longest_waiting(await directory.list_queued())
        if candidate is None:
            return None

        claimed = await directory.connect_to_agent(candidate.identity, agent_address)
        if claimed:
            logger.info("Agent %s connected to %s", agent_address.user_id, claimed.identity)
            return claimed

        logger.info(
            "Could not claim %s for agent %s (attempt %d/%d)",
            candidate.identity, agent_address.user_id, attempt, attempts,
        )
    return None
