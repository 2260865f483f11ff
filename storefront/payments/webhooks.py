import hashlib
import json
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.notifications.services import create_notification
from storefront.orders.repository import get_order_by_provider_id
from storefront.payments.services import mark_order_paid, mark_order_payment_failed, verify_webhook_signature
from storefront.schema.full_schema import NotificationType, PaymentWebhookEvent
from storefront.wallet.services import complete_topup, get_topup_by_gateway_order
from storefront.payments.constants import PROVIDER_RAZORPAY, logger

SUCCESS_EVENTS = {"payment.captured", "order.paid"}
FAILURE_EVENTS = {"payment.failed"}


def _entities(payload: dict):
    """(provider order id, payment id, error description) from a webhook payload."""
    body = payload.get("payload") or {}
    payment = (body.get("payment") or {}).get("entity") or {}
    order = (body.get("order") or {}).get("entity") or {}
    provider_order_id = payment.get("order_id") or order.get("id")
    return provider_order_id, payment.get("id"), payment.get("error_description")


async def _apply_event(session, event: str, payload: dict) -> str:
    provider_order_id, payment_id, error = _entities(payload)
    if not provider_order_id:
        return "ignored"

    success = event in SUCCESS_EVENTS
    order = await get_order_by_provider_id(session, provider_order_id)
    if order is not None:
        if success:
            await mark_order_paid(session, order, payment_id)
        else:
            mark_order_payment_failed(session, order, error or "")
        return "order"

    txn = await get_topup_by_gateway_order(session, provider_order_id)
    if txn is not None:
        settled = await complete_topup(session, txn, payment_id, success, payload, error)
        if settled and success:
            create_notification(session, txn.user_id, "Wallet credited",
                                "Your wallet top-up was successful.", NotificationType.PAYMENT_SUCCESS,
                                related_entity_type="wallet_transaction", related_entity_id=txn.public_id)
        return "wallet"
    return "unknown"


async def razorpay_webhook(request: Request, session: AsyncSession = Depends(get_session)):
    body = await request.body()
    if not verify_webhook_signature(body, request.headers.get("X-Razorpay-Signature")):
        logger.warning("webhook.signature.invalid")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    event = payload.get("event")
    event_id = (request.headers.get("X-Razorpay-Event-Id") or payload.get("id")
                or hashlib.sha256(body).hexdigest())

    record = PaymentWebhookEvent(provider=PROVIDER_RAZORPAY, provider_event_id=event_id, event=event,
                                 payload=payload)
    session.add(record)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.info("webhook.duplicate", extra={"event_id": event_id})
        return success_response({"status": "duplicate"})

    outcome = "ignored"
    if event in SUCCESS_EVENTS or event in FAILURE_EVENTS:
        outcome = await _apply_event(session, event, payload)
    record.processed_at = now()
    await session.commit()

    logger.info("webhook.processed", extra={"event": event, "event_id": event_id, "outcome": outcome})
    return success_response({"status": "ok", "outcome": outcome})
