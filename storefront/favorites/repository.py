from typing import Optional
from sqlalchemy import select
from storefront.schema.full_schema import Favorite, Product, ProductVariant


async def get_favorite(session, user_id: int, variant_id: int) -> Optional[Favorite]:
    stmt = select(Favorite).where(Favorite.user_id == user_id, Favorite.variant_id == variant_id)
    return (await session.execute(stmt)).scalar_one_or_none()


def favorites_stmt(user_id: int):
    return (select(Favorite, ProductVariant, Product.name, Product.slug, Product.is_active)
            .join(ProductVariant, ProductVariant.id == Favorite.variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(Favorite.user_id == user_id)
            .order_by(Favorite.created_at.desc(), Favorite.id.desc()))
