from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action, log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session
from storefront.orders.models import (CancelOrderIn, OrderCreateIn, OrderStatusIn, OrderUpdateIn, RefundIn,
                                      ReturnRequestIn)
from storefront.orders.repository import (admin_orders_stmt, get_my_order, get_order_by_pid, my_orders_stmt)
from storefront.orders.services import (apply_order_edits, cancel_order, change_order_status, order_detail,
                                        place_order, refund_order, request_return)
from storefront.orders.utils import order_out
from storefront.schema.full_schema import ActorType, OrderStatus, Orders, PaymentStatus, Users
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user, get_user_by_pid
from storefront.orders.constants import logger

orders_router = APIRouter()
orders_admin_router = APIRouter(dependencies=[require_permissions("order:manage")])


def _check_dates(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start_date cannot be after end_date")


@orders_router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(request: Request, payload: OrderCreateIn, session: AsyncSession = Depends(get_session)):
    user = await get_user(session, current_user_id(request))
    logger.info("order.create.attempt", extra={"user_public_id": request.state.user_public_id,
                                               "payment_gateway": payload.payment_gateway.value})

    order = await place_order(session, user, payload)
    await session.commit()

    logger.info("order.create.success", extra={"order_public_id": str(order.public_id),
                                               "grand_total": order.grand_total})
    log_user_activity(user.id, "ORDER_PLACED", {"order_number": order.order_number,
                                                "grand_total": order.grand_total})
    return success_response({"order": await order_detail(session, order)}, status.HTTP_201_CREATED)


@orders_router.get("")
async def get_my_orders(request: Request, order_status: Optional[OrderStatus] = Query(None, alias="status"),
                        start_date: Optional[date] = Query(None), end_date: Optional[date] = Query(None),
                        params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    _check_dates(start_date, end_date)
    stmt = my_orders_stmt(current_user_id(request), order_status, start_date, end_date)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([order_out(r[0]) for r in rows], meta))


@orders_router.get("/{order_number}")
async def get_my_order_details(request: Request, order_number: str, session: AsyncSession = Depends(get_session)):
    order = await get_my_order(session, current_user_id(request), order_number)
    return success_response({"order": await order_detail(session, order)})


@orders_router.post("/{order_number}/cancel")
async def cancel_my_order(request: Request, order_number: str, payload: CancelOrderIn,
                          session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    order = await get_my_order(session, user_id, order_number, for_update=True)
    await cancel_order(session, order, payload.reason, ActorType.USER)
    await session.commit()

    log_user_activity(user_id, "ORDER_CANCELLED", {"order_number": order.order_number})
    return success_response({"order": await order_detail(session, order)})


@orders_router.post("/{order_number}/return-request")
async def request_order_return(request: Request, order_number: str, payload: ReturnRequestIn,
                               session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    order = await get_my_order(session, user_id, order_number, for_update=True)
    request_return(order, payload.reason)
    await session.commit()

    log_user_activity(user_id, "ORDER_RETURN_REQUESTED", {"order_number": order.order_number})
    return success_response({"order": await order_detail(session, order)})


# ---------------------------------------------------------------- admin

@orders_admin_router.get("")
async def admin_list_orders(user_id: Optional[str] = Query(None),
                            order_status: Optional[OrderStatus] = Query(None),
                            payment_status: Optional[PaymentStatus] = Query(None),
                            order_number: Optional[str] = Query(None, max_length=32),
                            start_date: Optional[date] = Query(None), end_date: Optional[date] = Query(None),
                            params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    _check_dates(start_date, end_date)
    user_pk = (await get_user_by_pid(session, user_id)).id if user_id else None
    stmt = admin_orders_stmt(user_pk, order_status, payment_status, order_number, start_date, end_date)
    rows, meta = await paginate(session, stmt, params)

    items = []
    for order, user_pid, email in rows:
        data = order_out(order, user_public_id=user_pid)
        data["user_email"] = email
        items.append(data)
    return success_response(page_payload(items, meta))


@orders_admin_router.get("/stats")
async def admin_order_stats(session: AsyncSession = Depends(get_session)):
    not_cancelled = Orders.order_status != OrderStatus.CANCELLED
    row = (await session.execute(select(
        func.count(Orders.id),
        func.coalesce(func.sum(case((not_cancelled, Orders.grand_total), else_=0)), 0),
        func.count(case((Orders.order_status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING]), 1))),
        func.count(case((Orders.order_status == OrderStatus.DELIVERED, 1))),
        func.count(case((Orders.order_status == OrderStatus.CANCELLED, 1))),
    ))).first()
    return success_response({
        "total_orders": row[0],
        "total_amount": int(row[1]),
        "pending_orders": row[2],
        "completed_orders": row[3],
        "cancelled_orders": row[4],
    })


async def _admin_order_payload(session, order):
    user_pid = (await session.execute(select(Users.public_id).where(Users.id == order.user_id))).scalar_one()
    return await order_detail(session, order, user_public_id=user_pid)


@orders_admin_router.get("/{order_id}")
async def admin_get_order(order_id: str, session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id)
    return success_response({"order": await _admin_order_payload(session, order)})


@orders_admin_router.patch("/{order_id}")
async def admin_update_order(request: Request, order_id: str, payload: OrderUpdateIn,
                             session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id, for_update=True)
    updates = payload.model_dump(exclude_unset=True)
    money = apply_order_edits(order, updates)
    await session.commit()

    log_admin_action(request, "ORDER_UPDATED", "order", order.public_id,
                     {"fields": sorted(updates), **(money or {})})
    return success_response({"order": await _admin_order_payload(session, order)})


@orders_admin_router.patch("/{order_id}/status")
async def admin_update_order_status(request: Request, order_id: str, payload: OrderStatusIn,
                                    session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id, for_update=True)
    previous = order.order_status
    await change_order_status(session, order, payload)
    await session.commit()

    log_admin_action(request, "ORDER_STATUS_CHANGED", "order", order.public_id,
                     {"order_status": {"from": previous.value, "to": order.order_status.value}})
    return success_response({"order": await _admin_order_payload(session, order)})


@orders_admin_router.post("/{order_id}/refund")
async def admin_refund_order(request: Request, order_id: str, payload: RefundIn,
                             session: AsyncSession = Depends(get_session)):
    order = await get_order_by_pid(session, order_id, for_update=True)
    await refund_order(session, order, payload.amount, payload.reason, payload.to_wallet)
    await session.commit()

    log_admin_action(request, "ORDER_REFUNDED", "order", order.public_id,
                     {"amount": payload.amount, "to_wallet": payload.to_wallet, "reason": payload.reason})
    return success_response({"order": await _admin_order_payload(session, order)})
