from typing import Dict, List, Optional
from fastapi import HTTPException, status
from storefront.coupons.services import validate_coupon_for_lines
from storefront.inventory.services import ensure_stock, resolve_pack
from storefront.orders.utils import compute_shipping
from storefront.schema.full_schema import Cart, ProductVariant, Users
from storefront.cart.constants import logger


def cart_subtotal(lines: List[dict]) -> int:
    return sum(line["line_total"] for line in lines)


def cart_quantity(lines: List[dict]) -> int:
    return sum(line["quantity"] for line in lines)


def required_base_units(lines: List[dict], override: Optional[Dict[int, int]] = None) -> Dict[int, int]:
    """Base units needed per base variant, with quantities optionally overridden per variant id."""
    override = dict(override or {})
    required: Dict[int, int] = {}
    for line in lines:
        qty = override.pop(line["variant_id"], line["quantity"])
        base_id, multiplier = resolve_pack(line["variant"])
        required[base_id] = required.get(base_id, 0) + qty * multiplier
    return required


async def check_cart_stock(session, lines: List[dict], variant: ProductVariant, quantity: int) -> None:
    """Stock check for setting variant's line to quantity, counting lines that share its base unit."""
    required = required_base_units(lines, {variant.id: quantity})
    if not any(line["variant_id"] == variant.id for line in lines):
        base_id, multiplier = resolve_pack(variant)
        required[base_id] = required.get(base_id, 0) + quantity * multiplier
    base_id, _ = resolve_pack(variant)
    await ensure_stock(session, {base_id: required[base_id]})


def drop_coupon(cart: Cart) -> None:
    cart.applied_coupon_code = None
    cart.coupon_discount_amount = 0


async def recompute_cart_coupon(session, cart: Cart, lines: List[dict], user: Users) -> Optional[str]:
    """Refresh the applied coupon's discount. Returns the reason when the coupon was dropped."""
    if not cart.applied_coupon_code:
        return None
    subtotal = cart_subtotal(lines)
    if not lines:
        drop_coupon(cart)
        return "Cart is empty"
    try:
        _, _, discount = await validate_coupon_for_lines(session, user, cart.applied_coupon_code, lines,
                                                         subtotal, compute_shipping(cart_quantity(lines)))
    except HTTPException as exc:
        logger.info("cart.coupon.dropped", extra={"cart_id": cart.id, "reason": exc.detail})
        drop_coupon(cart)
        return exc.detail
    cart.coupon_discount_amount = discount
    return None


def cart_summary(cart: Cart, lines: List[dict]) -> dict:
    subtotal = cart_subtotal(lines)
    discount = cart.coupon_discount_amount if cart.applied_coupon_code else 0
    items = []
    for line in lines:
        variant, product = line["variant"], line["product"]
        items.append({
            "product_variant_id": variant.public_id,
            "sku_code": variant.sku_code,
            "product_name": product.name,
            "product_slug": product.slug,
            "option_values": variant.option_values,
            "quantity": line["quantity"],
            "price": line["price"],
            "price_at_addition": line["item"].price_at_addition,
            "line_total": line["line_total"],
            "is_available": line["is_available"],
        })
    return {
        "items": items,
        "item_count": len(items),
        "total_quantity": cart_quantity(lines),
        "subtotal": subtotal,
        "applied_coupon_code": cart.applied_coupon_code,
        "discount": discount,
        "total": max(0, subtotal - discount),
    }


def ensure_not_empty(lines: List[dict]) -> None:
    if not lines:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cart is empty")
