import asyncio
import json

import httpx
import pytest

from wabot.config import DispatchConfig
from wabot.services.whatsapp_service import WhatsAppClient

CONFIG = DispatchConfig(access_token="EAAG-test", phone_number_id="123456789")


def make_client(handler, config: DispatchConfig = CONFIG) -> WhatsAppClient:
    return WhatsAppClient(config, transport=httpx.MockTransport(handler))


class TestBuildPayload:
    def test_text_payload(self):
        client = WhatsAppClient(CONFIG)
        assert client.build_payload("26657683501", "Hello") == {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": "26657683501",
            "type": "text",
            "text": {"body": "Hello"},
        }

    def test_preview_url_flag(self):
        payload = WhatsAppClient(CONFIG).build_payload("26657683501", "https://example.com", preview_url=True)
        assert payload["text"] == {"body": "https://example.com", "preview_url": True}


class TestSend:
    def test_success_returns_provider_message_id(self):
        captured = {}

        def handler(request: httpx.Request):
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["payload"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "messaging_product": "whatsapp",
                    "contacts": [{"input": "26657683501", "wa_id": "26657683501"}],
                    "messages": [{"id": "wamid.HBgLMjY2NTc2ODM1MDEVAgARGBI"}],
                },
            )

        result = asyncio.run(make_client(handler).send("26657683501", "Hello!"))

        assert result.ok is True
        assert result.value == "wamid.HBgLMjY2NTc2ODM1MDEVAgARGBI"
        assert captured["url"] == "https://graph.facebook.com/v23.0/123456789/messages"
        assert captured["auth"] == "Bearer EAAG-test"
        assert captured["payload"]["to"] == "26657683501"
        assert captured["payload"]["text"] == {"body": "Hello!"}

    def test_provider_rejection_surfaces_message(self):
        def handler(request):
            return httpx.Response(
                400,
                json={"error": {"message": "Recipient phone number not in allowed list", "code": 131030}},
            )

        result = asyncio.run(make_client(handler).send("26657683501", "Hello!"))

        assert result.ok is False
        assert result.error_code == "provider_error"
        assert result.error == "API Error: Recipient phone number not in allowed list"

    def test_non_json_error_body(self):
        result = asyncio.run(make_client(lambda r: httpx.Response(502, text="Bad Gateway")).send("266", "Hi"))

        assert result.ok is False
        assert result.error_code == "provider_error"
        assert result.error.startswith("HTTP 502")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        result = asyncio.run(make_client(handler).send("26657683501", "Hello!"))

        assert result.ok is False
        assert result.error_code == "transport_error"
        assert "Name or service not known" in result.error

    def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = asyncio.run(make_client(handler).send("26657683501", "Hello!"))
        assert result.error_code == "transport_error"

    def test_not_configured_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        client = make_client(handler, DispatchConfig(phone_number_id="123"))
        result = asyncio.run(client.send("26657683501", "Hello!"))

        assert result.ok is False
        assert result.error_code == "not_configured"
        assert calls == []

    @pytest.mark.parametrize("address,body", [("", "Hello"), ("  ", "Hello"), ("266", ""), ("266", "   ")])
    def test_missing_address_or_body_raises(self, address, body):
        client = make_client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValueError):
            asyncio.run(client.send(address, body))

    def test_send_with_url_preview(self):
        captured = {}

        def handler(request):
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        asyncio.run(make_client(handler).send_with_url_preview("266", "https://example.com"))

        assert captured["payload"]["text"]["preview_url"] is True

    def test_redirect_is_provider_error(self):
        def handler(request):
            return httpx.Response(302, headers={"Location": "https://graph.facebook.com/login"})

        result = asyncio.run(make_client(handler).send("26657683501", "Hello!"))

        assert result.ok is False
        assert result.error_code == "provider_error"

    def test_invalid_phone_number_id_is_transport_error(self):
        config = DispatchConfig(access_token="EAAG-test", phone_number_id="1004637292722037\n")

        result = asyncio.run(WhatsAppClient(config).send("26657683501", "Hello!"))

        assert result.ok is False
        assert result.error_code == "transport_error"
