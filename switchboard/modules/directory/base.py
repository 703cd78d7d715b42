"""
User directory contract. Every backend (in-memory, PostgreSQL) implements it.

State transitions are compare-and-set: they return the updated record, or None
when the record is no longer in the state the caller expected.
"""

from typing import Protocol

from switchboard.models.handoff import ConversationAddress, HandoffState, HandoffUser


class UserDirectory(Protocol):

    async def find_or_create(self, address: ConversationAddress) -> HandoffUser:
        """Return the record for address.user_id, creating it connected to the bot."""
        ...

    async def get(self, identity: str) -> HandoffUser | None:
        ...

    async def append_message(self, user: HandoffUser, speaker_name: str, text: str) -> None:
        ...

    async def find_by_agent(self, agent_address: ConversationAddress) -> HandoffUser | None:
        ...

    async def list_queued(self) -> list[HandoffUser]:
        ...

    async def add_to_queue(self, identity: str) -> HandoffUser | None:
        """connected_to_bot -> queued_for_agent."""
        ...

    async def connect_to_agent(self, identity: str, agent_address: ConversationAddress) -> HandoffUser | None:
        """queued_for_agent -> connected_to_agent, unless the agent already serves someone."""
        ...

    async def connect_to_bot(self, identity: str, expected_state: HandoffState) -> HandoffUser | None:
        """queued_for_agent | connected_to_agent -> connected_to_bot."""
        ...
