from typing import List
from sqlalchemy import delete, select
from storefront.schema.full_schema import Cart, CartItem, Product, ProductVariant


async def get_cart(session, user_id: int):
    return (await session.execute(select(Cart).where(Cart.user_id == user_id))).scalar_one_or_none()


async def get_or_create_cart(session, user_id: int) -> Cart:
    cart = await get_cart(session, user_id)
    if cart is None:
        cart = Cart(user_id=user_id)
        session.add(cart)
        await session.flush()
    return cart


async def load_cart_lines(session, cart_id: int) -> List[dict]:
    stmt = (select(CartItem, ProductVariant, Product)
            .join(ProductVariant, ProductVariant.id == CartItem.variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at.asc(), CartItem.id.asc()))
    lines = []
    for item, variant, product in (await session.execute(stmt)).all():
        lines.append({
            "item": item,
            "variant": variant,
            "product": product,
            "variant_id": variant.id,
            "category_id": product.category_id,
            "quantity": item.quantity,
            "price": variant.price,
            "line_total": variant.price * item.quantity,
            "is_available": bool(variant.is_active and product.is_active),
        })
    return lines


async def get_cart_item(session, cart_id: int, variant_id: int):
    stmt = select(CartItem).where(CartItem.cart_id == cart_id, CartItem.variant_id == variant_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def clear_cart_items(session, cart_id: int) -> None:
    await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
