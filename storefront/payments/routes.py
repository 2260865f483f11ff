from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.common.utils import success_response
from storefront.config.settings import config_settings
from storefront.db.dependencies import get_session
from storefront.orders.repository import get_my_order, get_order_by_provider_id
from storefront.payments.models import CreatePaymentOrderIn, VerifyPaymentIn
from storefront.payments.services import (create_razorpay_order, mark_order_paid, mark_order_payment_failed,
                                          verify_payment_signature)
from storefront.schema.full_schema import OrderStatus, PaymentGateway, PaymentStatus
from storefront.user.dependencies import current_user_id
from storefront.payments.constants import logger

payments_router = APIRouter()


@payments_router.post("/razorpay/orders")
async def create_payment_order(request: Request, payload: CreatePaymentOrderIn,
                               session: AsyncSession = Depends(get_session)):
    order = await get_my_order(session, current_user_id(request), payload.order_number, for_update=True)

    if order.payment_gateway != PaymentGateway.RAZORPAY:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order is not payable online")
    if order.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Order payment is {order.payment_status.value.lower()}")
    if order.order_status == OrderStatus.CANCELLED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order is cancelled")

    if not order.razorpay_order_id:
        psp_resp = await create_razorpay_order(order.grand_total, order.order_number,
                                               {"order_public_id": str(order.public_id)})
        order.razorpay_order_id = psp_resp["id"]
        await session.commit()
    else:
        logger.info("payment.order.reused", extra={"order_public_id": str(order.public_id)})

    return success_response({
        "key_id": config_settings.RZPAY_KEY,
        "razorpay_order_id": order.razorpay_order_id,
        "amount": order.grand_total,
        "currency": config_settings.CURRENCY,
        "order_number": order.order_number,
    })


@payments_router.post("/razorpay/verify")
async def verify_payment(request: Request, payload: VerifyPaymentIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    order = await get_order_by_provider_id(session, payload.razorpay_order_id)
    if order is None or order.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    if order.payment_status == PaymentStatus.PAID:
        return success_response({"order_number": order.order_number, "payment_status": order.payment_status,
                                 "order_status": order.order_status, "already_verified": True})

    if not verify_payment_signature(payload.razorpay_order_id, payload.razorpay_payment_id,
                                    payload.razorpay_signature):
        mark_order_payment_failed(session, order, "Signature verification failed.")
        await session.commit()
        logger.warning("payment.verify.bad_signature", extra={"order_public_id": str(order.public_id)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payment signature")

    outcome = await mark_order_paid(session, order, payload.razorpay_payment_id)
    await session.commit()

    return success_response({"order_number": order.order_number, "payment_status": order.payment_status,
                             "order_status": order.order_status, "already_verified": outcome in ("duplicate", "ignored")})
