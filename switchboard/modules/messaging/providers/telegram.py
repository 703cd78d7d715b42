"""
Telegram Bot API provider. Users and agents both talk to the same bot;
agents are recognised by their username (e.g. @agent_laura).
"""

import logging

import httpx
from fastapi import Request

from switchboard.config import get_settings
from switchboard.models.handoff import ConversationAddress
from switchboard.modules.messaging.providers.base import DeliveryFailure, IncomingMessage

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}"


def _api_url(method: str) -> str:
    settings = get_settings()
    return f"{TELEGRAM_API.format(token=settings.telegram_bot_token)}/{method}"


async def _tg_request(method: str, payload: dict) -> dict:
    async with httpx.AsyncClient() as client:
        resp = await client.post(_api_url(method), json=payload)
    try:
        data = resp.json()
    except ValueError:
        data = {"ok": False, "error_code": resp.status_code, "description": f"Telegram answered HTTP {resp.status_code}"}
    if not data.get("ok"):
        logger.error("Telegram API error on %s: %s", method, data)
    return data


async def parse_webhook(request: Request) -> list[IncomingMessage]:
    update = await request.json()
    message = parse_update(update)
    return [message] if message else []


def parse_update(update: dict) -> IncomingMessage | None:
    message = update.get("message")
    if not message:
        return None

    sender = message.get("from", {})
    if sender.get("is_bot"):
        return None

    sender_id = sender.get("username") or str(sender.get("id", ""))
    name = " ".join(p for p in (sender.get("first_name"), sender.get("last_name")) if p)

    address = ConversationAddress(
        channel="telegram",
        conversation_id=str(message["chat"]["id"]),
        user_id=sender_id,
        user_name=name or sender_id,
    )
    return IncomingMessage(
        address=address,
        message_id=str(message.get("message_id", "")),
        text=message.get("text") or None,
        raw=update,
    )


async def send_text(address: ConversationAddress, text: str) -> dict:
    data = await _tg_request("sendMessage", {
        "chat_id": address.conversation_id,
        "text": text,
    })
    if not data.get("ok"):
        raise DeliveryFailure(data.get("description", "Telegram sendMessage failed"))
    return data


async def register_webhook(base_url: str) -> dict:
    """Register the Telegram webhook URL. Call once after deploy."""
    webhook_url = f"{base_url}/messages/webhook"
    return await _tg_request("setWebhook", {"url": webhook_url})
