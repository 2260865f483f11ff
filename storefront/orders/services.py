from typing import Optional
from fastapi import HTTPException, status
from storefront.cart.repository import clear_cart_items, get_or_create_cart, load_cart_lines
from storefront.cart.services import cart_quantity, cart_subtotal, drop_coupon, ensure_not_empty, required_base_units
from storefront.catalog.repository import public_ids_by_ids
from storefront.common.utils import now
from storefront.config.settings import config_settings
from storefront.coupons.services import redeem_coupon, reverse_coupon, validate_coupon_for_lines
from storefront.inventory.services import deduct_stock, ensure_stock, resolve_pack, restore_stock
from storefront.notifications.services import create_notification
from storefront.orders.repository import order_items, order_items_with_variants, order_number_taken
from storefront.orders.utils import (compute_grand_total, compute_shipping, compute_tax, generate_order_number,
                                     order_out)
from storefront.schema.full_schema import (ActorType, NotificationType, OrderItem, OrderStatus, Orders,
                                           PaymentGateway, PaymentStatus, ProductVariant, ReferenceType,
                                           TransactionType, Users)
from storefront.wallet.services import apply_wallet_transaction
from storefront.orders.constants import ALLOWED_TRANSITIONS, CANCELLABLE_STATUSES, ORDER_NUMBER_ATTEMPTS, logger


async def _unique_order_number(session) -> str:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        if not await order_number_taken(session, candidate):
            return candidate
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Could not allocate an order number")


async def place_order(session, user: Users, payload) -> Orders:
    """Turn the user's cart into an order. Caller commits."""
    cart = await get_or_create_cart(session, user.id)
    lines = await load_cart_lines(session, cart.id)
    ensure_not_empty(lines)

    unavailable = [line["variant"].sku_code for line in lines if not line["is_available"]]
    if unavailable:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Items no longer available: {', '.join(unavailable)}")

    subtotal = cart_subtotal(lines)
    shipping = compute_shipping(cart_quantity(lines))
    tax = compute_tax(subtotal)

    user_coupon = campaign = None
    discount = 0
    if cart.applied_coupon_code:
        user_coupon, campaign, discount = await validate_coupon_for_lines(
            session, user, cart.applied_coupon_code, lines, subtotal, shipping)
    # a discount never pushes the total below zero
    discount = min(discount, subtotal + shipping + tax)
    grand_total = compute_grand_total(subtotal, shipping, tax, discount)

    required = required_base_units(lines)
    await ensure_stock(session, required)

    shipping_address = payload.shipping_address.model_dump()
    billing_address = (payload.billing_address or payload.shipping_address).model_dump()
    order = Orders(
        order_number=await _unique_order_number(session),
        user_id=user.id,
        shipping_address=shipping_address,
        billing_address=billing_address,
        payment_gateway=payload.payment_gateway,
        subtotal=subtotal, shipping_cost=shipping, tax_amount=tax, discount_amount=discount,
        grand_total=grand_total,
        applied_coupon_code=user_coupon.coupon_code if user_coupon else None,
        notes=payload.notes,
    )
    session.add(order)
    await session.flush()

    for line in lines:
        variant = line["variant"]
        session.add(OrderItem(
            order_id=order.id, variant_id=variant.id, sku_code=variant.sku_code,
            product_name=line["product"].name, variant_options=variant.option_values,
            quantity=line["quantity"], price=line["price"], subtotal=line["line_total"],
        ))

    for base_id, amount in required.items():
        await deduct_stock(session, base_id, amount)

    if user_coupon is not None:
        await redeem_coupon(session, user_coupon, campaign)

    if order.payment_gateway == PaymentGateway.WALLET:
        if grand_total > 0:
            await apply_wallet_transaction(session, user.id, TransactionType.DEBIT, grand_total,
                                           f"Payment for order {order.order_number}", ReferenceType.ORDER,
                                           order.order_number, ActorType.USER, payment_method="WALLET")
        order.payment_status = PaymentStatus.PAID
        order.order_status = OrderStatus.PROCESSING

    await clear_cart_items(session, cart.id)
    drop_coupon(cart)
    cart.updated_at = now()

    create_notification(session, user.id, "Order placed",
                        f"Your order {order.order_number} has been placed.",
                        NotificationType.ORDER_UPDATE, related_entity_type="order",
                        related_entity_id=order.order_number)
    await session.flush()
    return order


async def refund_to_wallet(session, order: Orders, amount: int, reason: str, actor: ActorType) -> None:
    await apply_wallet_transaction(session, order.user_id, TransactionType.CREDIT, amount,
                                   f"Refund for order {order.order_number}", ReferenceType.REFUND,
                                   order.order_number, actor, details={"reason": reason})
    create_notification(session, order.user_id, "Refund credited",
                        f"{amount / 100:.2f} {config_settings.CURRENCY} was credited to your wallet for order "
                        f"{order.order_number}.", NotificationType.PAYMENT_SUCCESS,
                        related_entity_type="order", related_entity_id=order.order_number)


async def cancel_order(session, order: Orders, reason: str, actor: ActorType = ActorType.USER) -> Orders:
    """Cancel, put stock back, reverse the coupon and refund a paid amount to the wallet."""
    if order.order_status not in CANCELLABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Order cannot be cancelled in status {order.order_status.value}")

    restore = {}
    for item, variant in await order_items_with_variants(session, order.id):
        base_id, multiplier = resolve_pack(variant)
        restore[base_id] = restore.get(base_id, 0) + item.quantity * multiplier
    for base_id, amount in restore.items():
        await restore_stock(session, base_id, amount)

    if order.applied_coupon_code:
        await reverse_coupon(session, order.user_id, order.applied_coupon_code)

    if order.payment_status in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED):
        outstanding = order.grand_total - order.refunded_amount
        if outstanding > 0:
            await refund_to_wallet(session, order, outstanding, reason, actor)
            order.refunded_amount += outstanding
        order.payment_status = PaymentStatus.REFUNDED

    order.order_status = OrderStatus.CANCELLED
    order.cancelled_at = now()
    order.notes = f"{order.notes}\nCancelled: {reason}" if order.notes else f"Cancelled: {reason}"
    order.updated_at = now()

    logger.info("order.cancelled", extra={"order_public_id": str(order.public_id), "actor": actor.value})
    return order


def request_return(order: Orders, reason: str) -> Orders:
    if order.order_status != OrderStatus.DELIVERED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only delivered orders can be returned")
    order.order_status = OrderStatus.RETURN_REQUESTED
    order.notes = f"{order.notes}\nReturn requested: {reason}" if order.notes else f"Return requested: {reason}"
    order.updated_at = now()
    return order


async def change_order_status(session, order: Orders, payload) -> Orders:
    target = payload.order_status
    current = order.order_status
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Cannot move order from {current.value} to {target.value}")

    if target == OrderStatus.CANCELLED:
        await cancel_order(session, order, payload.notes or "Cancelled by admin", ActorType.ADMIN)
    else:
        if target == OrderStatus.SHIPPED and not (order.payment_status == PaymentStatus.PAID
                                                  or order.payment_gateway == PaymentGateway.COD):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order must be paid before shipping")
        if target == OrderStatus.DELIVERED:
            order.delivered_at = now()
            if order.payment_gateway == PaymentGateway.COD and order.payment_status == PaymentStatus.PENDING:
                order.payment_status = PaymentStatus.PAID
        order.order_status = target
        if payload.notes:
            order.notes = f"{order.notes}\n{payload.notes}" if order.notes else payload.notes

    if payload.tracking_number is not None:
        order.tracking_number = payload.tracking_number
    if payload.shipping_carrier is not None:
        order.shipping_carrier = payload.shipping_carrier
    order.updated_at = now()

    notification_type = NotificationType.SHIPPING_UPDATE if target in (OrderStatus.SHIPPED, OrderStatus.DELIVERED) \
        else NotificationType.ORDER_UPDATE
    create_notification(session, order.user_id, "Order update",
                        f"Your order {order.order_number} is now {target.value.replace('_', ' ').lower()}.",
                        notification_type, related_entity_type="order", related_entity_id=order.order_number)
    return order


def apply_order_edits(order: Orders, updates: dict) -> Optional[dict]:
    """Apply admin edits and recompute the grand total. Returns money changes."""
    # explicit nulls leave the stored value untouched
    updates = {field: value for field, value in updates.items() if value is not None}
    for field in ("shipping_cost", "tax_amount", "discount_amount"):
        if updates.get(field, 0) < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be negative")

    shipping = updates.get("shipping_cost", order.shipping_cost)
    tax = updates.get("tax_amount", order.tax_amount)
    discount = updates.get("discount_amount", order.discount_amount)
    grand_total = compute_grand_total(order.subtotal, shipping, tax, discount)
    if grand_total < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Grand total cannot be negative")
    if grand_total < order.refunded_amount:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Grand total cannot drop below the refunded amount")

    money = None
    if grand_total != order.grand_total:
        money = {"grand_total": {"from": order.grand_total, "to": grand_total}}

    for field, value in updates.items():
        setattr(order, field, value)
    order.grand_total = grand_total
    order.updated_at = now()
    return money


async def refund_order(session, order: Orders, amount: int, reason: str, to_wallet: bool) -> Orders:
    if order.payment_status not in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only paid orders can be refunded")
    refundable = order.grand_total - order.refunded_amount
    if not 0 < amount <= refundable:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Refund amount must be between 1 and {refundable}")

    if to_wallet:
        await refund_to_wallet(session, order, amount, reason, ActorType.ADMIN)
    order.refunded_amount += amount
    order.payment_status = (PaymentStatus.REFUNDED if order.refunded_amount == order.grand_total
                            else PaymentStatus.PARTIALLY_REFUNDED)
    order.updated_at = now()
    logger.info("order.refunded", extra={"order_public_id": str(order.public_id), "amount": amount,
                                         "to_wallet": to_wallet})
    return order


async def order_detail(session, order: Orders, user_public_id=None) -> dict:
    items = await order_items(session, order.id)
    variant_pids = await public_ids_by_ids(session, ProductVariant, [i.variant_id for i in items])
    return order_out(order, items, variant_pids, user_public_id)
