"""
In-memory user directory. All mutations go through one asyncio.Lock, so the
directory behaves as a single writer; records live for the process lifetime.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from switchboard.models.handoff import (
    ConversationAddress,
    HandoffState,
    HandoffUser,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryUserDirectory:

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._users: dict[str, HandoffUser] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def find_or_create(self, address: ConversationAddress) -> HandoffUser:
        async with self._lock:
            user = self._users.get(address.user_id)
            if user is None:
                user = HandoffUser(identity=address.user_id, address=address)
                self._users[address.user_id] = user
                logger.info("New handoff user %s", user.identity)
            return user

    async def get(self, identity: str) -> HandoffUser | None:
        return self._users.get(identity)

    async def append_message(self, user: HandoffUser, speaker_name: str, text: str) -> None:
        async with self._lock:
            user.transcript.append(TranscriptEntry(speaker_name=speaker_name, text=text))

    async def find_by_agent(self, agent_address: ConversationAddress) -> HandoffUser | None:
        return self._find_by_agent_id(agent_address.user_id)

    async def list_queued(self) -> list[HandoffUser]:
        return [u for u in self._users.values() if u.state == HandoffState.QUEUED_FOR_AGENT]

    async def add_to_queue(self, identity: str) -> HandoffUser | None:
        async with self._lock:
            user = self._users.get(identity)
            if not user or user.state != HandoffState.CONNECTED_TO_BOT:
                return None
            user.state = HandoffState.QUEUED_FOR_AGENT
            user.queued_at = self._clock()
            return user

    async def connect_to_agent(self, identity: str, agent_address: ConversationAddress) -> HandoffUser | None:
        async with self._lock:
            user = self._users.get(identity)
            if not user or user.state != HandoffState.QUEUED_FOR_AGENT:
                return None
            if self._find_by_agent_id(agent_address.user_id):
                return None
            user.state = HandoffState.CONNECTED_TO_AGENT
            user.agent_link = agent_address
            user.queued_at = None
            return user

    async def connect_to_bot(self, identity: str, expected_state: HandoffState) -> HandoffUser | None:
        async with self._lock:
            user = self._users.get(identity)
            if not user or user.state != expected_state or expected_state == HandoffState.CONNECTED_TO_BOT:
                return None
            user.state = HandoffState.CONNECTED_TO_BOT
            user.agent_link = None
            user.queued_at = None
            return user

    def _find_by_agent_id(self, agent_id: str) -> HandoffUser | None:
        for user in self._users.values():
            if user.agent_link and user.agent_link.user_id == agent_id:
                return user
        return None
