import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from storefront.config.settings import config_settings
from storefront.messaging.constants import SMTP_TIMEOUT_SECONDS, logger


def _build_message(to: str, subject: str, body: str, html: Optional[str]) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = config_settings.SMTP_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def _send_sync(msg: EmailMessage) -> None:
    with smtplib.SMTP(config_settings.SMTP_HOST, config_settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
        if config_settings.SMTP_USE_TLS:
            server.starttls()
        if config_settings.SMTP_USERNAME and config_settings.SMTP_PASSWORD:
            server.login(config_settings.SMTP_USERNAME, config_settings.SMTP_PASSWORD)
        server.send_message(msg)


async def send_email(to: str, subject: str, body: str, html: Optional[str] = None) -> bool:
    """Returns False when smtp is not configured or the send fails."""
    if not config_settings.SMTP_HOST:
        logger.info("email.skipped.not_configured", extra={"subject": subject})
        return False

    msg = _build_message(to, subject, body, html)
    try:
        await asyncio.to_thread(_send_sync, msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("email.send.failed", extra={"subject": subject, "error": str(exc)})
        return False

    logger.info("email.sent", extra={"subject": subject})
    return True
