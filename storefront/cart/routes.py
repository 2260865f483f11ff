from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.cart.models import CartItemIn, CartItemUpdateIn
from storefront.cart.repository import clear_cart_items, get_cart, get_cart_item, get_or_create_cart, load_cart_lines
from storefront.cart.services import (cart_quantity, cart_subtotal, cart_summary, check_cart_stock, drop_coupon,
                                      ensure_not_empty, recompute_cart_coupon)
from storefront.common.pagination import PageParams, page_params, page_payload, pagination_meta
from storefront.common.utils import now, success_response
from storefront.coupons.models import CouponCodeIn
from storefront.coupons.services import validate_coupon_for_lines
from storefront.db.dependencies import get_session
from storefront.orders.utils import compute_shipping
from storefront.products.repository import get_variant_by_pid
from storefront.schema.full_schema import Cart, CartItem, ProductVariant, Users
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user, get_user_by_pid
from storefront.cart.constants import logger

carts_router = APIRouter()
carts_admin_router = APIRouter(dependencies=[require_permissions("cart:view")])


async def _respond_after_change(session, cart, user_id):
    lines = await load_cart_lines(session, cart.id)
    dropped = await recompute_cart_coupon(session, cart, lines, await get_user(session, user_id))
    cart.updated_at = now()
    await session.commit()

    data = cart_summary(cart, lines)
    if dropped:
        data["coupon_removed_reason"] = dropped
    return data


@carts_router.get("")
async def get_my_cart(request: Request, session: AsyncSession = Depends(get_session)):
    cart = await get_or_create_cart(session, current_user_id(request))
    await session.commit()
    lines = await load_cart_lines(session, cart.id)
    return success_response({"cart": cart_summary(cart, lines)})


@carts_router.post("/items")
async def add_to_cart(request: Request, payload: CartItemIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    variant = await get_variant_by_pid(session, payload.product_variant_id, active_only=True)

    cart = await get_or_create_cart(session, user_id)
    lines = await load_cart_lines(session, cart.id)

    item = await get_cart_item(session, cart.id, variant.id)
    new_quantity = payload.quantity + (item.quantity if item else 0)
    await check_cart_stock(session, lines, variant, new_quantity)

    if item:
        item.quantity = new_quantity
        item.updated_at = now()
    else:
        session.add(CartItem(cart_id=cart.id, variant_id=variant.id, quantity=new_quantity,
                             price_at_addition=variant.price))

    data = await _respond_after_change(session, cart, user_id)
    log_user_activity(user_id, "ITEM_ADDED_TO_CART", {"sku_code": variant.sku_code, "quantity": payload.quantity})
    return success_response({"cart": data})


@carts_router.patch("/items/{variant_id}")
async def update_cart_item(request: Request, variant_id: str, payload: CartItemUpdateIn,
                           session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    variant = await get_variant_by_pid(session, variant_id)
    cart = await get_or_create_cart(session, user_id)

    item = await get_cart_item(session, cart.id, variant.id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not in cart")

    if payload.quantity == 0:
        await session.delete(item)
        activity = "ITEM_REMOVED_FROM_CART"
    else:
        lines = await load_cart_lines(session, cart.id)
        await check_cart_stock(session, lines, variant, payload.quantity)
        item.quantity = payload.quantity
        item.updated_at = now()
        activity = "CART_ITEM_UPDATED"
    await session.flush()

    data = await _respond_after_change(session, cart, user_id)
    log_user_activity(user_id, activity, {"sku_code": variant.sku_code, "quantity": payload.quantity})
    return success_response({"cart": data})


@carts_router.delete("/items/{variant_id}")
async def remove_cart_item(request: Request, variant_id: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    variant = await get_variant_by_pid(session, variant_id)
    cart = await get_or_create_cart(session, user_id)

    item = await get_cart_item(session, cart.id, variant.id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not in cart")
    await session.delete(item)
    await session.flush()

    data = await _respond_after_change(session, cart, user_id)
    log_user_activity(user_id, "ITEM_REMOVED_FROM_CART", {"sku_code": variant.sku_code})
    return success_response({"cart": data})


@carts_router.post("/coupon")
async def apply_coupon(request: Request, payload: CouponCodeIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    cart = await get_or_create_cart(session, user_id)
    lines = await load_cart_lines(session, cart.id)
    ensure_not_empty(lines)

    _, campaign, discount = await validate_coupon_for_lines(
        session, await get_user(session, user_id), payload.coupon_code, lines,
        cart_subtotal(lines), compute_shipping(cart_quantity(lines)))

    cart.applied_coupon_code = payload.coupon_code
    cart.coupon_discount_amount = discount
    cart.updated_at = now()
    await session.commit()

    logger.info("cart.coupon.applied", extra={"cart_id": cart.id, "campaign_id": campaign.id, "discount": discount})
    log_user_activity(user_id, "COUPON_APPLIED", {"coupon_code": payload.coupon_code})
    return success_response({"cart": cart_summary(cart, lines)})


@carts_router.delete("/coupon")
async def remove_coupon(request: Request, session: AsyncSession = Depends(get_session)):
    cart = await get_or_create_cart(session, current_user_id(request))
    drop_coupon(cart)
    cart.updated_at = now()
    await session.commit()
    lines = await load_cart_lines(session, cart.id)
    return success_response({"cart": cart_summary(cart, lines)})


@carts_router.delete("")
async def clear_cart(request: Request, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    cart = await get_or_create_cart(session, user_id)
    await clear_cart_items(session, cart.id)
    drop_coupon(cart)
    cart.updated_at = now()
    await session.commit()

    log_user_activity(user_id, "CART_CLEARED")
    return success_response({"cart": cart_summary(cart, [])})


# ---------------------------------------------------------------- admin

async def _carts_with_items(session, params: PageParams):
    non_empty = select(CartItem.cart_id).distinct()
    total = (await session.execute(
        select(func.count()).select_from(Cart).where(Cart.id.in_(non_empty)))).scalar_one()
    stmt = (select(Cart, Users.public_id, Users.email)
            .join(Users, Users.id == Cart.user_id)
            .where(Cart.id.in_(non_empty))
            .order_by(Cart.updated_at.desc(), Cart.id.desc())
            .offset(params.offset).limit(params.limit))
    return (await session.execute(stmt)).all(), pagination_meta(total, params)


@carts_admin_router.get("")
async def admin_list_carts(params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await _carts_with_items(session, params)
    items = []
    for cart, user_pid, email in rows:
        summary = cart_summary(cart, await load_cart_lines(session, cart.id))
        summary.pop("items")
        items.append({"user_id": user_pid, "email": email, "updated_at": cart.updated_at, **summary})
    return success_response(page_payload(items, meta))


@carts_admin_router.get("/stats")
async def admin_cart_stats(session: AsyncSession = Depends(get_session)):
    total_carts = (await session.execute(select(func.count(Cart.id)))).scalar_one()
    with_items = (await session.execute(select(func.count(func.distinct(CartItem.cart_id))))).scalar_one()
    with_coupons = (await session.execute(
        select(func.count(Cart.id)).where(Cart.applied_coupon_code.is_not(None)))).scalar_one()
    total_value = (await session.execute(
        select(func.coalesce(func.sum(CartItem.quantity * ProductVariant.price), 0))
        .join(ProductVariant, ProductVariant.id == CartItem.variant_id))).scalar_one()

    return success_response({
        "total_carts": total_carts,
        "carts_with_items": with_items,
        "carts_with_coupons": with_coupons,
        "total_value": int(total_value),
        "average_cart_value": int(total_value) // with_items if with_items else 0,
    })


@carts_admin_router.get("/users/{user_id}")
async def admin_get_user_cart(user_id: str, session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, user_id)
    cart = await get_cart(session, user.id)
    lines = await load_cart_lines(session, cart.id) if cart else []
    summary = cart_summary(cart or Cart(user_id=user.id), lines)
    return success_response({"user_id": user.public_id, "cart": summary})
