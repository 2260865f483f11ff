from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import select
from storefront.common.utils import parse_uuid
from storefront.schema.full_schema import OrderItem, OrderStatus, Orders, PaymentStatus, ProductVariant, Users


def day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def apply_date_range(stmt, column, start_date: Optional[date], end_date: Optional[date]):
    if start_date:
        stmt = stmt.where(column >= day_start(start_date))
    if end_date:
        stmt = stmt.where(column < day_start(end_date + timedelta(days=1)))
    return stmt


def my_orders_stmt(user_id: int, order_status: Optional[OrderStatus] = None,
                   start_date: Optional[date] = None, end_date: Optional[date] = None):
    stmt = select(Orders).where(Orders.user_id == user_id)
    if order_status is not None:
        stmt = stmt.where(Orders.order_status == order_status)
    stmt = apply_date_range(stmt, Orders.created_at, start_date, end_date)
    return stmt.order_by(Orders.created_at.desc(), Orders.id.desc())


def admin_orders_stmt(user_id: Optional[int] = None, order_status: Optional[OrderStatus] = None,
                      payment_status: Optional[PaymentStatus] = None, order_number: Optional[str] = None,
                      start_date: Optional[date] = None, end_date: Optional[date] = None):
    stmt = select(Orders, Users.public_id, Users.email).join(Users, Users.id == Orders.user_id)
    if user_id is not None:
        stmt = stmt.where(Orders.user_id == user_id)
    if order_status is not None:
        stmt = stmt.where(Orders.order_status == order_status)
    if payment_status is not None:
        stmt = stmt.where(Orders.payment_status == payment_status)
    if order_number:
        stmt = stmt.where(Orders.order_number.ilike(f"%{order_number.strip()}%"))
    stmt = apply_date_range(stmt, Orders.created_at, start_date, end_date)
    return stmt.order_by(Orders.created_at.desc(), Orders.id.desc())


async def get_my_order(session, user_id: int, order_number: str, for_update: bool = False) -> Orders:
    stmt = select(Orders).where(Orders.order_number == order_number, Orders.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    order = (await session.execute(stmt)).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def get_order_by_pid(session, order_pid, for_update: bool = False) -> Orders:
    stmt = select(Orders).where(Orders.public_id == parse_uuid(order_pid, "Order"))
    if for_update:
        stmt = stmt.with_for_update()
    order = (await session.execute(stmt)).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def get_order_by_provider_id(session, razorpay_order_id: str) -> Optional[Orders]:
    stmt = select(Orders).where(Orders.razorpay_order_id == razorpay_order_id).with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


async def order_number_taken(session, order_number: str) -> bool:
    stmt = select(Orders.id).where(Orders.order_number == order_number)
    return (await session.execute(stmt)).scalar_one_or_none() is not None


async def order_items(session, order_id: int):
    stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id.asc())
    return (await session.execute(stmt)).scalars().all()


async def order_items_with_variants(session, order_id: int):
    stmt = (select(OrderItem, ProductVariant)
            .join(ProductVariant, ProductVariant.id == OrderItem.variant_id)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.id.asc()))
    return (await session.execute(stmt)).all()
