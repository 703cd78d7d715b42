"""Direct channel: JSON activities in, JSON callbacks out."""

import httpx
from fastapi import Request

from switchboard.config import get_settings
from switchboard.models.handoff import ConversationAddress
from switchboard.modules.messaging.providers.base import DeliveryFailure, IncomingMessage


async def parse_webhook(request: Request) -> list[IncomingMessage]:
    body = await request.json()
    activities = body if isinstance(body, list) else [body]
    return [parse_activity(activity) for activity in activities if activity.get("from")]


def parse_activity(activity: dict) -> IncomingMessage:
    sender = activity.get("from", {})
    sender_id = str(sender.get("id", ""))
    conversation = activity.get("conversation", {})

    address = ConversationAddress(
        channel="direct",
        conversation_id=str(conversation.get("id") or sender_id),
        user_id=sender_id,
        user_name=sender.get("name") or sender_id,
        service_url=activity.get("service_url"),
    )
    return IncomingMessage(
        address=address,
        message_id=str(activity.get("id", "")),
        text=activity.get("text") or None,
        raw=activity,
    )


async def send_text(address: ConversationAddress, text: str) -> dict:
    url = address.service_url or get_settings().direct_callback_url
    if not url:
        raise DeliveryFailure(f"No callback URL for conversation {address.conversation_id}")

    payload = {
        "conversation_id": address.conversation_id,
        "recipient": {"id": address.user_id, "name": address.user_name},
        "text": text,
    }
    async with httpx.AsyncClient() as client:
        response = await client.post(url, json=payload)
        if response.status_code >= 400:
            raise DeliveryFailure(f"Callback {url} answered {response.status_code}")
        return {"status_code": response.status_code}
