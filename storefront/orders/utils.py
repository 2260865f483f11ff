import secrets
from typing import Any, Dict, Optional
from storefront.common.utils import as_utc, now, to_public
from storefront.config.settings import config_settings


def compute_shipping(total_quantity: int) -> int:
    if total_quantity >= config_settings.FREE_SHIPPING_MIN_QTY:
        return 0
    return config_settings.SHIPPING_FEE


def compute_tax(subtotal: int) -> int:
    # integer half-up rounding of subtotal * rate / 100
    return (subtotal * config_settings.TAX_RATE_PERCENT + 50) // 100


def compute_grand_total(subtotal: int, shipping: int, tax: int, discount: int) -> int:
    return subtotal + shipping + tax - discount


def generate_order_number() -> str:
    return now().strftime("%Y%m%d") + secrets.token_hex(3).upper()


def order_out(order, items=None, variant_pids=None, user_public_id=None) -> Dict[str, Any]:
    data = to_public(order, exclude={"user_id"})
    for field in ("created_at", "updated_at", "cancelled_at", "delivered_at"):
        data[field] = as_utc(data.get(field))
    if items is not None:
        variant_pids = variant_pids or {}
        data["items"] = [order_item_out(i, variant_pids.get(i.variant_id)) for i in items]
    if user_public_id is not None:
        data["user_id"] = user_public_id
    return data


def order_item_out(item, variant_public_id: Optional[Any] = None) -> Dict[str, Any]:
    return {
        "product_variant_id": variant_public_id,
        "sku_code": item.sku_code,
        "product_name": item.product_name,
        "variant_options": item.variant_options,
        "quantity": item.quantity,
        "price": item.price,
        "subtotal": item.subtotal,
    }
