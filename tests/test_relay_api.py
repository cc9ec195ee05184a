"""HTTP tests for the WhatsApp relay endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from twilio.base.exceptions import TwilioRestException

from app.config import settings
from app.relay_main import app as relay_app
from app.routers.relay import build_twilio_client, get_twilio_client, whatsapp_address


@pytest.fixture
def twilio_client():
    client = MagicMock()
    client.messages.create_async = AsyncMock(
        return_value=SimpleNamespace(sid="SM123", status="queued")
    )
    return client


@pytest.fixture
async def relay(twilio_client):
    relay_app.dependency_overrides[get_twilio_client] = lambda: twilio_client
    transport = ASGITransport(app=relay_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    relay_app.dependency_overrides.clear()


def provider_error(code: int, msg: str) -> TwilioRestException:
    return TwilioRestException(400, "/Messages.json", msg=msg, code=code)


def test_whatsapp_address():
    assert whatsapp_address("+1 (555) 123-4567") == "whatsapp:+15551234567"
    assert whatsapp_address("whatsapp:+15551234567") == "whatsapp:+15551234567"


async def test_health(relay):
    body = (await relay.get("/api/health")).json()
    assert body["status"] == "ok"
    assert body["whatsappNumber"] == settings.TWILIO_WHATSAPP_NUMBER
    assert "timestamp" in body


async def test_send(relay, twilio_client):
    resp = await relay.post("/api/send-whatsapp", json={"to": "+1 555 123 4567", "body": "hi"})

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "messageId": "SM123",
        "status": "queued",
        "to": "whatsapp:+15551234567",
    }
    twilio_client.messages.create_async.assert_awaited_once_with(
        from_=settings.TWILIO_WHATSAPP_NUMBER, to="whatsapp:+15551234567", body="hi"
    )


@pytest.mark.parametrize("payload", [{"to": "+15551234567"}, {"body": "hi"}, {}])
async def test_send_missing_fields(relay, twilio_client, payload):
    resp = await relay.post("/api/send-whatsapp", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Missing required fields: to, body"}
    twilio_client.messages.create_async.assert_not_awaited()


@pytest.mark.parametrize(
    "code, slug, message",
    [
        (21211, "invalid-number", "Invalid phone number format"),
        (21408, "whatsapp-not-enabled", "WhatsApp not enabled for this number"),
        (20003, "auth-failed", "Authentication failed - check credentials"),
    ],
)
async def test_provider_errors_are_mapped(relay, twilio_client, code, slug, message):
    twilio_client.messages.create_async.side_effect = provider_error(code, "raw provider text")

    resp = await relay.post("/api/send-whatsapp", json={"to": "+15551234567", "body": "hi"})

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "error": message,
        "code": slug,
        "providerCode": code,
    }


async def test_unknown_provider_error_keeps_message(relay, twilio_client):
    twilio_client.messages.create_async.side_effect = provider_error(63016, "Outside the allowed window")

    resp = await relay.post("/api/send-whatsapp", json={"to": "+15551234567", "body": "hi"})

    body = resp.json()
    assert resp.status_code == 500
    assert body["code"] == "UNKNOWN"
    assert body["error"] == "Outside the allowed window"


async def test_test_message(relay, twilio_client):
    resp = await relay.post("/api/test-whatsapp", json={"phoneNumber": "+15551234567"})

    assert resp.status_code == 200
    assert resp.json()["message"] == "Test message sent successfully!"
    body = twilio_client.messages.create_async.await_args.kwargs["body"]
    assert "WhatsApp Test Message" in body
    assert "+15551234567" in body


async def test_test_message_requires_number(relay):
    resp = await relay.post("/api/test-whatsapp", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Phone number is required"


def test_missing_credentials_are_reported(monkeypatch):
    build_twilio_client.cache_clear()
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "")

    with pytest.raises(HTTPException) as exc:
        get_twilio_client()
    assert exc.value.status_code == 500
    build_twilio_client.cache_clear()
