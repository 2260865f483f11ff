from datetime import timedelta
from sqlalchemy import case, func, select
from storefront.common.utils import as_utc, now
from storefront.orders.repository import day_start
from storefront.schema.full_schema import (Inventory, OrderItem, OrderStatus, Orders, Product, ProductReview,
                                           ProductVariant, ReviewStatus, SupportTicket, TicketStatus, Users)
from storefront.dashboard.constants import RECENT_ORDERS, REVENUE_PAYMENT_STATUSES


def _net_revenue():
    paid = Orders.payment_status.in_(REVENUE_PAYMENT_STATUSES)
    return func.coalesce(func.sum(case((paid, Orders.grand_total - Orders.refunded_amount), else_=0)), 0)


async def _count(session, column, *where):
    return (await session.execute(select(func.count(column)).where(*where))).scalar_one()


async def overview(session):
    today = day_start(now().date())
    orders_total, revenue = (await session.execute(select(func.count(Orders.id), _net_revenue()))).one()
    today_orders, today_revenue = (await session.execute(
        select(func.count(Orders.id), _net_revenue()).where(Orders.created_at >= today))).one()
    by_status = (await session.execute(
        select(Orders.order_status, func.count(Orders.id)).group_by(Orders.order_status))).all()

    recent = (await session.execute(
        select(Orders.public_id, Orders.order_number, Orders.order_status, Orders.payment_status,
               Orders.grand_total, Orders.created_at, Users.email)
        .join(Users, Users.id == Orders.user_id)
        .order_by(Orders.created_at.desc(), Orders.id.desc()).limit(RECENT_ORDERS))).all()

    return {
        "totals": {
            "users": await _count(session, Users.id, Users.is_active.is_(True)),
            "products": await _count(session, Product.id, Product.is_active.is_(True)),
            "active_variants": await _count(session, ProductVariant.id, ProductVariant.is_active.is_(True)),
            "orders": orders_total,
            "revenue": int(revenue),
        },
        "orders_by_status": {**{s.value: 0 for s in OrderStatus}, **{s.value: c for s, c in by_status}},
        "today": {"orders": today_orders, "revenue": int(today_revenue)},
        "low_stock_count": await _count(session, Inventory.id, Inventory.stock_quantity <= Inventory.min_stock_level),
        "open_tickets": await _count(session, SupportTicket.id, SupportTicket.status.in_(
            (TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER))),
        "pending_reviews": await _count(session, ProductReview.id, ProductReview.status.in_(
            (ReviewStatus.PENDING_APPROVAL, ReviewStatus.FLAGGED))),
        "recent_orders": [
            {"id": r[0], "order_number": r[1], "order_status": r[2], "payment_status": r[3], "grand_total": r[4],
             "created_at": as_utc(r[5]), "user_email": r[6]}
            for r in recent
        ],
    }


async def sales_series(session, days: int):
    """One bucket per day, oldest first, today included."""
    first_day = now().date() - timedelta(days=days - 1)
    rows = (await session.execute(
        select(Orders.created_at, Orders.payment_status, Orders.grand_total, Orders.refunded_amount)
        .where(Orders.created_at >= day_start(first_day), Orders.order_status != OrderStatus.CANCELLED))).all()

    buckets = {first_day + timedelta(days=i): {"orders": 0, "revenue": 0} for i in range(days)}
    for created_at, payment_status, grand_total, refunded in rows:
        bucket = buckets.get(as_utc(created_at).date())
        if bucket is None:
            continue
        bucket["orders"] += 1
        if payment_status in REVENUE_PAYMENT_STATUSES:
            bucket["revenue"] += grand_total - refunded
    return [{"date": d.isoformat(), **v} for d, v in sorted(buckets.items())]


async def top_products(session, limit: int):
    units = func.sum(OrderItem.quantity).label("units_sold")
    stmt = (select(ProductVariant.public_id, ProductVariant.sku_code, Product.name, units,
                   func.sum(OrderItem.subtotal))
            .join(Orders, Orders.id == OrderItem.order_id)
            .join(ProductVariant, ProductVariant.id == OrderItem.variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(Orders.order_status != OrderStatus.CANCELLED)
            .group_by(ProductVariant.id, ProductVariant.public_id, ProductVariant.sku_code, Product.name)
            .order_by(units.desc(), ProductVariant.id)
            .limit(limit))
    rows = (await session.execute(stmt)).all()
    return [{"product_variant_id": r[0], "sku_code": r[1], "product_name": r[2], "units_sold": int(r[3]),
             "revenue": int(r[4])} for r in rows]
