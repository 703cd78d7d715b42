import logging

from fastapi import APIRouter, Request

from switchboard.config import get_settings
from switchboard.modules.bot.responder import BotResponder
from switchboard.modules.handoff.router import HandoffRouter
from switchboard.modules.messaging.providers.base import IncomingMessage
from switchboard.modules.messaging.sender import Delivery, get_provider

router = APIRouter()
logger = logging.getLogger(__name__)

TURN_ERROR_TEXT = "Oops. Something went wrong!"


@router.post("/webhook")
async def receive_message(request: Request):
    """Receive incoming messages from the configured channel."""
    provider = get_provider()
    messages = await provider.parse_webhook(request)
    state = request.app.state

    for msg in messages:
        logger.info(
            "Incoming [%s] from %s: text=%s",
            get_settings().messaging_provider,
            msg.sender_id,
            msg.text[:80] if msg.text else "(no text)",
        )
        await run_turn(msg, state.handoff, state.bot, state.delivery)

    return {"status": "ok"}


async def run_turn(
    msg: IncomingMessage,
    handoff: HandoffRouter,
    bot: BotResponder,
    delivery: Delivery,
) -> None:
    """One turn: the handoff router first, the bot when the router falls through."""
    try:
        if await handoff.handle(msg):
            return
        if not msg.text:
            return
        reply = await bot.respond(msg)
        if reply:
            await delivery.send(msg.address, reply)
    except Exception as e:
        logger.exception("Error processing message from %s: %s", msg.sender_id, e)
        await delivery.send(msg.address, TURN_ERROR_TEXT)
