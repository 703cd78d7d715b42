"""
Admin API: read-only views of the handoff queue and user records.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from switchboard.models.handoff import HandoffUser
from switchboard.modules.handoff.queue import by_wait_time
from switchboard.modules.messaging.providers import telegram

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/queue")
async def get_queue(request: Request):
    """Users waiting for an agent, longest waiting first."""
    directory = request.app.state.directory
    queued = by_wait_time(await directory.list_queued())
    return {
        "count": len(queued),
        "users": [
            {
                "identity": u.identity,
                "name": u.display_name,
                "queued_at": u.queued_at.isoformat() if u.queued_at else None,
            }
            for u in queued
        ],
    }


@router.get("/users/{identity}", response_model=HandoffUser)
async def get_user(identity: str, request: Request):
    user = await request.app.state.directory.get(identity)
    if not user:
        raise HTTPException(status_code=404, detail=f"User {identity} not found")
    return user


@router.post("/telegram/register-webhook")
async def register_telegram_webhook(base_url: str):
    """Point the Telegram bot at this deployment. Call once after deploy."""
    result = await telegram.register_webhook(base_url.rstrip("/"))
    if not result.get("ok"):
        raise HTTPException(status_code=502, detail=result.get("description", "Telegram setWebhook failed"))
    logger.info("Telegram webhook registered for %s", base_url)
    return result
