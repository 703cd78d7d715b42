from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HandoffState(str, Enum):
    CONNECTED_TO_BOT = "connected_to_bot"
    QUEUED_FOR_AGENT = "queued_for_agent"
    CONNECTED_TO_AGENT = "connected_to_agent"


class ConversationAddress(BaseModel):
    """Enough to reach a party proactively on its channel."""
    channel: str = "direct"
    conversation_id: str
    user_id: str
    user_name: str = ""
    service_url: str | None = None


class TranscriptEntry(BaseModel):
    speaker_name: str
    text: str


class HandoffUser(BaseModel):
    identity: str
    address: ConversationAddress
    state: HandoffState = HandoffState.CONNECTED_TO_BOT
    agent_link: ConversationAddress | None = None  # set iff connected_to_agent
    queued_at: datetime | None = None  # set iff queued_for_agent
    transcript: list[TranscriptEntry] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.address.user_name or self.identity
