"""Shared fixtures for the Switchboard test suite.

Everything runs against the in-memory directory and a recording delivery;
nothing touches the network or a database.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from switchboard.config import Settings
from switchboard.models.handoff import ConversationAddress
from switchboard.modules.directory.memory import InMemoryUserDirectory
from switchboard.modules.handoff.router import HandoffRouter
from switchboard.modules.messaging.providers.base import IncomingMessage


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class RecordingDelivery:
    """Delivery that records every send instead of calling a channel."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.failing: set[str] = set()

    async def send(self, address: ConversationAddress, text: str) -> bool:
        await asyncio.sleep(0)
        if address.user_id in self.failing:
            return False
        self.sent.append((address.user_id, text))
        return True

    def to(self, user_id: str) -> list[str]:
        return [text for recipient, text in self.sent if recipient == user_id]

    def clear(self) -> None:
        self.sent.clear()


class SnapshotDirectory(InMemoryUserDirectory):
    """In-memory directory that hands out copies, as a database-backed one does."""

    async def find_or_create(self, address: ConversationAddress):
        return (await super().find_or_create(address)).model_copy(deep=True)

    async def get(self, identity: str):
        user = await super().get(identity)
        return user.model_copy(deep=True) if user else None

    async def append_message(self, user, speaker_name: str, text: str) -> None:
        await super().append_message(self._users[user.identity], speaker_name, text)
        user.transcript = list(self._users[user.identity].transcript)


def address(user_id: str, name: str | None = None) -> ConversationAddress:
    return ConversationAddress(
        conversation_id=f"conv-{user_id}",
        user_id=user_id,
        user_name=name or user_id.title(),
    )


def message(user_id: str, text: str | None, name: str | None = None) -> IncomingMessage:
    return IncomingMessage(address=address(user_id, name), message_id="m1", text=text)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def directory(clock):
    return InMemoryUserDirectory(clock=clock)


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def settings():
    return Settings(_env_file=None, anthropic_api_key="", messaging_provider="direct")


@pytest.fixture
def router(directory, delivery, settings):
    return HandoffRouter(directory, delivery, settings)


@pytest.fixture
def snapshot_directory(clock):
    return SnapshotDirectory(clock=clock)


@pytest.fixture
def snapshot_router(snapshot_directory, delivery, settings):
    return HandoffRouter(snapshot_directory, delivery, settings)
