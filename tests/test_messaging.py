import httpx
import pytest
from storefront.config.settings import config_settings
from storefront.messaging import email as email_module
from storefront.messaging import images as images_module
from storefront.messaging import sms as sms_module
from storefront.messaging.email import send_email
from storefront.messaging.images import fetch_category_image
from storefront.messaging.sms import send_sms

_RealAsyncClient = httpx.AsyncClient


def _mock_http(monkeypatch, module, handler):
    def _client(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    monkeypatch.setattr(module.httpx, "AsyncClient", _client)


@pytest.mark.asyncio
async def test_email_skipped_without_smtp(monkeypatch):
    monkeypatch.setattr(config_settings, "SMTP_HOST", None)
    assert await send_email("buyer@example.com", "Hi", "Body") is False


@pytest.mark.asyncio
async def test_email_sent_through_smtp(monkeypatch):
    sent = []
    monkeypatch.setattr(config_settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(email_module, "_send_sync", sent.append)

    assert await send_email("buyer@example.com", "Your code", "123456", html="<b>123456</b>") is True
    assert sent[0]["To"] == "buyer@example.com"
    assert sent[0]["Subject"] == "Your code"


@pytest.mark.asyncio
async def test_email_failure_is_reported(monkeypatch):
    def _refuse(msg):
        raise OSError("connection refused")

    monkeypatch.setattr(config_settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(email_module, "_send_sync", _refuse)
    assert await send_email("buyer@example.com", "Hi", "Body") is False


@pytest.mark.asyncio
async def test_sms_gateway(monkeypatch):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    monkeypatch.setattr(config_settings, "SMS_GATEWAY_URL", None)
    assert await send_sms("+919876543210", "hello") is False

    monkeypatch.setattr(config_settings, "SMS_GATEWAY_URL", "https://sms.example.com/send")
    _mock_http(monkeypatch, sms_module, handler)
    assert await send_sms("+919876543210", "hello") is True
    assert seen[0].url == "https://sms.example.com/send"


@pytest.mark.asyncio
async def test_sms_gateway_error(monkeypatch):
    monkeypatch.setattr(config_settings, "SMS_GATEWAY_URL", "https://sms.example.com/send")
    _mock_http(monkeypatch, sms_module, lambda request: httpx.Response(503))
    assert await send_sms("+919876543210", "hello") is False


@pytest.mark.asyncio
async def test_category_image(monkeypatch):
    monkeypatch.setattr(config_settings, "UNSPLASH_ACCESS_KEY", None)
    assert await fetch_category_image("lamps") is None

    def handler(request):
        assert request.headers["Authorization"] == "Client-ID key-1"
        assert request.url.params["query"] == "lamps"
        return httpx.Response(200, json={"results": [{"urls": {"regular": "https://img.example.com/lamp.jpg"}}]})

    monkeypatch.setattr(config_settings, "UNSPLASH_ACCESS_KEY", "key-1")
    _mock_http(monkeypatch, images_module, handler)
    assert await fetch_category_image("lamps") == "https://img.example.com/lamp.jpg"

    _mock_http(monkeypatch, images_module, lambda request: httpx.Response(200, json={"results": []}))
    assert await fetch_category_image("lamps") is None
