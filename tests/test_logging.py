import json
import logging
from storefront.common.constants import request_id_ctx
from storefront.common.logging_setup import JSONFormatter, sanitize_message_text, shorten_public_id


def _record(msg, **extra):
    record = logging.LogRecord("storefront.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_sanitize_message_text():
    assert sanitize_message_text("login password=hunter2 ok") == "login password=[REDACTED] ok"
    assert sanitize_message_text('{"token": "abc.def"}') == '{"token": "[REDACTED]"}'
    assert sanitize_message_text("order placed") == "order placed"


def test_shorten_public_id():
    assert shorten_public_id("0192f0c4-7a1b-7cde-8f00-1234567890ab") == "0192f0c4...90ab"
    assert shorten_public_id("short") == "short..."


def test_json_formatter_redacts_and_shortens():
    token = request_id_ctx.set("req-1")
    try:
        line = JSONFormatter().format(_record("refresh_token=abc123 rotated", password="hunter2",
                                              user_public_id="0192f0c4-7a1b-7cde-8f00-1234567890ab",
                                              amount=500))
    finally:
        request_id_ctx.reset(token)

    data = json.loads(line)
    assert data["message"] == "refresh_token=[REDACTED] rotated"
    assert data["password"] == "[REDACTED]"
    assert data["user_public_id"] == "0192f0c4...90ab"
    assert data["amount"] == 500
    assert data["request_id"] == "req-1"
    assert data["level"] == "INFO"
    assert data["logger"] == "storefront.test"
