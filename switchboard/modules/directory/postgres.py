"""
PostgreSQL user directory on asyncpg.

Transitions are single conditional UPDATEs, so the state check and the write
happen atomically per row. The partial unique index on agent_id guarantees an
agent is linked to at most one user.
"""

import json
import logging

import asyncpg

from switchboard.models.handoff import (
    ConversationAddress,
    HandoffState,
    HandoffUser,
    TranscriptEntry,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS handoff_users (
    identity TEXT PRIMARY KEY,
    address JSONB NOT NULL,
    state TEXT NOT NULL DEFAULT 'connected_to_bot',
    agent_id TEXT,
    agent_link JSONB,
    queued_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS handoff_users_agent_id_key
    ON handoff_users (agent_id) WHERE agent_id IS NOT NULL;
CREATE TABLE IF NOT EXISTS handoff_messages (
    id BIGSERIAL PRIMARY KEY,
    identity TEXT NOT NULL REFERENCES handoff_users (identity),
    speaker_name TEXT NOT NULL,
    text TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

USER_COLUMNS = "identity, address, state, agent_link, queued_at"


def _load_json(value):
    if value is None or isinstance(value, dict):
        return value
    return json.loads(value)


def row_to_user(row, transcript: list[TranscriptEntry] | None = None) -> HandoffUser:
    agent_link = _load_json(row["agent_link"])
    return HandoffUser(
        identity=row["identity"],
        address=ConversationAddress(**_load_json(row["address"])),
        state=HandoffState(row["state"]),
        agent_link=ConversationAddress(**agent_link) if agent_link else None,
        queued_at=row["queued_at"],
        transcript=transcript or [],
    )


class PostgresUserDirectory:

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def ensure_schema(self) -> None:
        await self.pool.execute(SCHEMA)

    async def find_or_create(self, address: ConversationAddress) -> HandoffUser:
        inserted = await self.pool.execute(
            "INSERT INTO handoff_users (identity, address) VALUES ($1, $2::jsonb) ON CONFLICT (identity) DO NOTHING",
            address.user_id,
            address.model_dump_json(),
        )
        if inserted.endswith(" 1"):
            logger.info("New handoff user %s", address.user_id)
        return await self.get(address.user_id)

    async def get(self, identity: str) -> HandoffUser | None:
        row = await self.pool.fetchrow(
            f"SELECT {USER_COLUMNS} FROM handoff_users WHERE identity = $1", identity,
        )
        if not row:
            return None
        return row_to_user(row, await self._transcript(identity))

    async def append_message(self, user: HandoffUser, speaker_name: str, text: str) -> None:
        await self.pool.execute(
            "INSERT INTO handoff_messages (identity, speaker_name, text) VALUES ($1, $2, $3)",
            user.identity, speaker_name, text,
        )
        user.transcript.append(TranscriptEntry(speaker_name=speaker_name, text=text))

    async def find_by_agent(self, agent_address: ConversationAddress) -> HandoffUser | None:
        row = await self.pool.fetchrow(
            f"SELECT {USER_COLUMNS} FROM handoff_users WHERE agent_id = $1", agent_address.user_id,
        )
        if not row:
            return None
        return row_to_user(row, await self._transcript(row["identity"]))

    async def list_queued(self) -> list[HandoffUser]:
        rows = await self.pool.fetch(
            f"SELECT {USER_COLUMNS} FROM handoff_users WHERE state = $1",
            HandoffState.QUEUED_FOR_AGENT.value,
        )
        return [row_to_user(r) for r in rows]

    async def add_to_queue(self, identity: str) -> HandoffUser | None:
        row = await self.pool.fetchrow(
            f"""UPDATE handoff_users SET state = $2, queued_at = NOW()
               WHERE identity = $1 AND state = $3
               RETURNING {USER_COLUMNS}""",
            identity,
            HandoffState.QUEUED_FOR_AGENT.value,
            HandoffState.CONNECTED_TO_BOT.value,
        )
        return row_to_user(row) if row else None

    async def connect_to_agent(self, identity: str, agent_address: ConversationAddress) -> HandoffUser | None:
        try:
            row = await self.pool.fetchrow(
                f"""UPDATE handoff_users
                   SET state = $2, agent_id = $3, agent_link = $4::jsonb, queued_at = NULL
                   WHERE identity = $1 AND state = $5
                   RETURNING {USER_COLUMNS}""",
                identity,
                HandoffState.CONNECTED_TO_AGENT.value,
                agent_address.user_id,
                agent_address.model_dump_json(),
                HandoffState.QUEUED_FOR_AGENT.value,
            )
        except asyncpg.UniqueViolationError:
            logger.info("Agent %s already linked, not connecting %s", agent_address.user_id, identity)
            return None
        return row_to_user(row) if row else None

    async def connect_to_bot(self, identity: str, expected_state: HandoffState) -> HandoffUser | None:
        if expected_state == HandoffState.CONNECTED_TO_BOT:
            return None
        row = await self.pool.fetchrow(
            f"""UPDATE handoff_users
               SET state = $2, agent_id = NULL, agent_link = NULL, queued_at = NULL
               WHERE identity = $1 AND state = $3
               RETURNING {USER_COLUMNS}""",
            identity,
            HandoffState.CONNECTED_TO_BOT.value,
            expected_state.value,
        )
        return row_to_user(row) if row else None

    async def _transcript(self, identity: str) -> list[TranscriptEntry]:
        rows = await self.pool.fetch(
            "SELECT speaker_name, text FROM handoff_messages WHERE identity = $1 ORDER BY id",
            identity,
        )
        return [TranscriptEntry(speaker_name=r["speaker_name"], text=r["text"]) for r in rows]
