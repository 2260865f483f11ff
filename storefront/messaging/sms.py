import httpx

from storefront.config.settings import config_settings
from storefront.messaging.constants import SMS_TIMEOUT_SECONDS, logger


async def send_sms(to: str, body: str) -> bool:
    """Post a message to the configured sms gateway. Returns False instead of raising."""
    if not config_settings.SMS_GATEWAY_URL:
        logger.info("sms.skipped.not_configured")
        return False

    payload = {"to": to, "message": body, "sender_id": config_settings.SMS_SENDER_ID}
    headers = {"Authorization": f"Bearer {config_settings.SMS_API_KEY}"} if config_settings.SMS_API_KEY else {}
    try:
        async with httpx.AsyncClient(timeout=SMS_TIMEOUT_SECONDS) as client:
            resp = await client.post(config_settings.SMS_GATEWAY_URL, json=payload, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("sms.send.failed", extra={"error": str(exc)})
        return False

    logger.info("sms.sent")
    return True
