import asyncio
import hashlib
import hmac
from typing import Optional
import httpx
from fastapi import HTTPException, status
from storefront.common.utils import now
from storefront.config.settings import config_settings
from storefront.notifications.services import create_notification
from storefront.orders.services import refund_to_wallet
from storefront.schema.full_schema import ActorType, NotificationType, OrderStatus, Orders, PaymentStatus
from storefront.payments.constants import DEFAULT_BACKOFF_BASE, DEFAULT_RETRIES, PSP_TIMEOUT_SECONDS, logger

TRANSIENT_EXCEPTIONS = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError, httpx.NetworkError)


async def create_psp_order(amount_paise: int, currency: str, receipt: str, notes: Optional[dict] = None,
                           timeout: float = PSP_TIMEOUT_SECONDS) -> dict:
    """
    Create a Razorpay order (server -> razorpay).
    amount_paise: integer paise
    receipt: internal reference, e.g. the order number
    """
    url = f"{config_settings.RZPAY_GATEWAY_URL}/orders"
    payload = {
        "amount": amount_paise,
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    }
    async with httpx.AsyncClient(timeout=timeout,
                                 auth=(config_settings.RZPAY_KEY, config_settings.RZPAY_SECRET)) as client:
        resp = await client.post(url, json=payload, headers={"Content-Type": "application/json"})
        resp.raise_for_status()
        return resp.json()


def retry_payments(func, max_retries: int = DEFAULT_RETRIES, backoff_base: Optional[float] = None):
    """Retry transient provider failures with exponential backoff, surface 4xx at once."""
    async def retry_wrapper(*args, **kwargs):
        base = DEFAULT_BACKOFF_BASE if backoff_base is None else backoff_base
        last_exc = None
        for attempt_idx in range(1, max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except TRANSIENT_EXCEPTIONS as ex:
                last_exc = ex
            except httpx.HTTPStatusError as ex:
                status_code = ex.response.status_code if ex.response is not None else None
                if status_code and 500 <= status_code < 600:
                    last_exc = ex
                else:
                    logger.warning("psp.request.rejected", extra={"http_status": status_code,
                                                                  "attempt": attempt_idx})
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                        detail=f"Payment provider rejected the request ({status_code})")

            logger.warning("psp.request.retrying", extra={"attempt": attempt_idx, "error": str(last_exc)})
            if attempt_idx < max_retries:
                await asyncio.sleep(base * (2 ** (attempt_idx - 1)))

        logger.error("psp.request.exhausted", extra={"attempts": max_retries, "error": str(last_exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider unavailable")

    return retry_wrapper


async def create_razorpay_order(amount: int, receipt: str, notes: Optional[dict] = None) -> dict:
    call = retry_payments(create_psp_order)
    psp_resp = await call(amount_paise=amount, currency=config_settings.CURRENCY, receipt=receipt, notes=notes)
    if not psp_resp or not psp_resp.get("id"):
        logger.error("psp.order.no_id", extra={"receipt": receipt})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider returned no order id")
    logger.info("psp.order.created", extra={"receipt": receipt, "provider_order_id": psp_resp["id"]})
    return psp_resp


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def sign_payment(order_id: str, payment_id: str) -> str:
    return _hmac_hex(config_settings.RZPAY_SECRET, f"{order_id}|{payment_id}".encode())


def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    return hmac.compare_digest(sign_payment(order_id, payment_id), signature or "")


def sign_webhook(body: bytes) -> str:
    return _hmac_hex(config_settings.RAZORPAY_WEBHOOK_SECRET, body)


def verify_webhook_signature(body: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_webhook(body), signature)


async def mark_order_paid(session, order: Orders, payment_id: Optional[str]) -> str:
    """
    Settle a captured payment against its order.
    Returns "paid", "duplicate" (already paid), "refunded" (captured after a cancel,
    credited to the wallet) or "ignored" (order already refunded).
    """
    if order.payment_status == PaymentStatus.PAID:
        return "duplicate"
    if order.payment_status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED):
        logger.warning("payment.capture.after_refund", extra={"order_public_id": str(order.public_id),
                                                              "payment_id": payment_id})
        return "ignored"

    if order.order_status == OrderStatus.CANCELLED:
        # stock is already back on the shelf, the money goes to the wallet
        order.razorpay_payment_id = payment_id or order.razorpay_payment_id
        outstanding = order.grand_total - order.refunded_amount
        if outstanding > 0:
            await refund_to_wallet(session, order, outstanding, "Payment captured after cancellation",
                                   ActorType.SYSTEM)
            order.refunded_amount += outstanding
        order.payment_status = PaymentStatus.REFUNDED
        order.updated_at = now()
        logger.warning("payment.capture.after_cancel", extra={"order_public_id": str(order.public_id),
                                                              "refunded": outstanding})
        return "refunded"

    order.payment_status = PaymentStatus.PAID
    order.razorpay_payment_id = payment_id or order.razorpay_payment_id
    if order.order_status == OrderStatus.PENDING:
        order.order_status = OrderStatus.PROCESSING
    order.updated_at = now()

    create_notification(session, order.user_id, "Payment received",
                        f"Payment for order {order.order_number} was successful.",
                        NotificationType.PAYMENT_SUCCESS, related_entity_type="order",
                        related_entity_id=order.order_number)
    logger.info("payment.order.paid", extra={"order_public_id": str(order.public_id)})
    return "paid"


def mark_order_payment_failed(session, order: Orders, reason: str) -> bool:
    if order.payment_status != PaymentStatus.PENDING:
        return False
    order.payment_status = PaymentStatus.FAILED
    order.updated_at = now()

    create_notification(session, order.user_id, "Payment failed",
                        f"Payment for order {order.order_number} failed. {reason}".strip(),
                        NotificationType.PAYMENT_FAILED, related_entity_type="order",
                        related_entity_id=order.order_number)
    logger.info("payment.order.failed", extra={"order_public_id": str(order.public_id), "reason": reason})
    return True
