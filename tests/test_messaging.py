"""Tests for the channel providers and the failure-tolerant delivery."""

from types import SimpleNamespace

import httpx
import pytest

from conftest import address, message
from switchboard.config import Settings
from switchboard.models.handoff import HandoffState
from switchboard.modules.handoff.router import HandoffRouter
from switchboard.modules.messaging.providers import direct, telegram
from switchboard.modules.messaging.providers.base import DeliveryFailure
from switchboard.modules.messaging.sender import ProviderDelivery, get_provider


class TestDirectProvider:
    def test_parse_activity(self):
        msg = direct.parse_activity({
            "id": "a1",
            "text": "hello",
            "from": {"id": "alice", "name": "Alice"},
            "conversation": {"id": "c-9"},
            "service_url": "http://callback.test",
        })
        assert msg.sender_id == "alice"
        assert msg.sender_name == "Alice"
        assert msg.text == "hello"
        assert msg.address.conversation_id == "c-9"
        assert msg.address.service_url == "http://callback.test"

    def test_conversation_defaults_to_sender(self):
        msg = direct.parse_activity({"from": {"id": "alice"}, "text": ""})
        assert msg.address.conversation_id == "alice"
        assert msg.sender_name == "alice"
        assert msg.text is None

    @pytest.mark.asyncio
    async def test_send_without_callback_fails(self, monkeypatch):
        monkeypatch.setattr(direct, "get_settings", lambda: Settings(_env_file=None, direct_callback_url=""))
        with pytest.raises(DeliveryFailure):
            await direct.send_text(address("alice"), "hi")


class TestTelegramProvider:
    def test_parse_update_uses_username(self):
        msg = telegram.parse_update({
            "message": {
                "message_id": 7,
                "chat": {"id": 12345},
                "from": {"id": 99, "username": "agent_laura", "first_name": "Laura", "last_name": "P"},
                "text": "#connect",
            }
        })
        assert msg.sender_id == "agent_laura"
        assert msg.sender_name == "Laura P"
        assert msg.address.channel == "telegram"
        assert msg.address.conversation_id == "12345"

    def test_parse_update_falls_back_to_numeric_id(self):
        msg = telegram.parse_update({
            "message": {"message_id": 1, "chat": {"id": 5}, "from": {"id": 42}, "text": "hi"}
        })
        assert msg.sender_id == "42"

    def test_bot_messages_and_non_messages_ignored(self):
        assert telegram.parse_update({"edited_message": {}}) is None
        assert telegram.parse_update({
            "message": {"chat": {"id": 5}, "from": {"id": 1, "is_bot": True}, "text": "x"}
        }) is None


class TestProviderDelivery:
    @pytest.mark.asyncio
    async def test_success(self):
        sent = []

        async def send_text(addr, text):
            sent.append((addr.user_id, text))
            return {}

        delivery = ProviderDelivery(SimpleNamespace(send_text=send_text))
        assert await delivery.send(address("alice"), "hi") is True
        assert sent == [("alice", "hi")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [DeliveryFailure("rejected"), httpx.ConnectError("down")])
    async def test_failures_are_reported_not_raised(self, error):
        async def send_text(addr, text):
            raise error

        delivery = ProviderDelivery(SimpleNamespace(send_text=send_text))
        assert await delivery.send(address("alice"), "hi") is False

    def test_get_provider(self):
        assert get_provider("telegram") is telegram
        assert get_provider("direct") is direct

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_reported_not_raised(self):
        async def send_text(addr, text):
            raise ValueError("not json")

        delivery = ProviderDelivery(SimpleNamespace(send_text=send_text))
        assert await delivery.send(address("alice"), "hi") is False


def use_telegram_transport(monkeypatch, handler):
    """Route the Telegram provider's httpx client through a mock transport."""
    real_client = httpx.AsyncClient
    monkeypatch.setattr(telegram.httpx, "AsyncClient", lambda: real_client(transport=httpx.MockTransport(handler)))


def bad_gateway(request):
    return httpx.Response(502, text="<html><body>502 Bad Gateway</body></html>")


class TestTelegramOutage:
    @pytest.mark.asyncio
    async def test_non_json_error_becomes_delivery_failure(self, monkeypatch):
        use_telegram_transport(monkeypatch, bad_gateway)
        with pytest.raises(DeliveryFailure):
            await telegram.send_text(address("alice"), "hi")

    @pytest.mark.asyncio
    async def test_delivery_returns_false(self, monkeypatch):
        use_telegram_transport(monkeypatch, bad_gateway)
        assert await ProviderDelivery(telegram).send(address("alice"), "hi") is False

    @pytest.mark.asyncio
    async def test_connect_survives_outage(self, monkeypatch, directory, settings):
        use_telegram_transport(monkeypatch, bad_gateway)
        router = HandoffRouter(directory, ProviderDelivery(telegram), settings)
        await directory.find_or_create(address("alice"))
        await directory.add_to_queue("alice")

        assert await router.handle(message("agent1", "#connect")) is True

        alice = await directory.get("alice")
        assert alice.state == HandoffState.CONNECTED_TO_AGENT
        assert alice.agent_link.user_id == "agent1"

    @pytest.mark.asyncio
    async def test_register_webhook(self, monkeypatch):
        calls = []

        def handler(request):
            calls.append((request.url.path, request.content))
            return httpx.Response(200, json={"ok": True, "result": True})

        use_telegram_transport(monkeypatch, handler)

        result = await telegram.register_webhook("https://switchboard.example")

        assert result["ok"] is True
        assert calls[0][0].endswith("/setWebhook")
        assert b"https://switchboard.example/messages/webhook" in calls[0][1]
