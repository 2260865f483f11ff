from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import func, select
from storefront.common.utils import parse_uuid
from storefront.schema.full_schema import Brand, Category, Product, ProductVariant
from storefront.products.constants import logger


def _min_price_subquery():
    return (select(ProductVariant.product_id, func.min(ProductVariant.price).label("min_price"))
            .where(ProductVariant.is_active.is_(True))
            .group_by(ProductVariant.product_id)
            .subquery())


def product_list_stmt(q: Optional[str] = None, category: Optional[str] = None, brand: Optional[str] = None,
                      min_price: Optional[int] = None, max_price: Optional[int] = None,
                      sort: str = "newest", include_inactive: bool = False):
    prices = _min_price_subquery()
    stmt = select(Product, prices.c.min_price).outerjoin(prices, prices.c.product_id == Product.id)

    if not include_inactive:
        stmt = stmt.where(Product.is_active.is_(True))
    if q:
        stmt = stmt.where(Product.name.ilike(f"%{q.strip()}%"))
    if category:
        stmt = stmt.join(Category, Category.id == Product.category_id).where(Category.slug == category)
    if brand:
        stmt = stmt.join(Brand, Brand.id == Product.brand_id).where(Brand.slug == brand)
    # price filters compare against the cheapest active variant
    if min_price is not None:
        stmt = stmt.where(prices.c.min_price >= min_price)
    if max_price is not None:
        stmt = stmt.where(prices.c.min_price <= max_price)

    if sort == "price_asc":
        stmt = stmt.order_by(prices.c.min_price.asc(), Product.id.asc())
    elif sort == "price_desc":
        stmt = stmt.order_by(prices.c.min_price.desc(), Product.id.desc())
    elif sort == "rating":
        stmt = stmt.order_by(Product.average_rating.desc(), Product.reviews_count.desc(), Product.id.desc())
    else:
        stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc())
    return stmt


async def get_product_by_slug(session, slug: str) -> Product:
    stmt = select(Product).where(Product.slug == slug, Product.is_active.is_(True))
    product = (await session.execute(stmt)).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def get_product_by_pid(session, product_pid) -> Product:
    pid = parse_uuid(product_pid, "Product")
    product = (await session.execute(select(Product).where(Product.public_id == pid))).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def get_variant_by_pid(session, variant_pid, active_only: bool = False) -> ProductVariant:
    pid = parse_uuid(variant_pid, "Product variant")
    stmt = select(ProductVariant).where(ProductVariant.public_id == pid)
    if active_only:
        stmt = (stmt.join(Product, Product.id == ProductVariant.product_id)
                .where(ProductVariant.is_active.is_(True), Product.is_active.is_(True)))
    variant = (await session.execute(stmt)).scalar_one_or_none()
    if not variant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product variant not found")
    return variant


async def list_variants(session, product_id: int, include_inactive: bool = False):
    stmt = select(ProductVariant).where(ProductVariant.product_id == product_id)
    if not include_inactive:
        stmt = stmt.where(ProductVariant.is_active.is_(True))
    stmt = stmt.order_by(ProductVariant.sort_order.asc(), ProductVariant.id.asc())
    return (await session.execute(stmt)).scalars().all()


async def ensure_sku_free(session, sku_code: str, exclude_id: Optional[int] = None):
    stmt = select(ProductVariant.id).where(ProductVariant.sku_code == sku_code)
    if exclude_id is not None:
        stmt = stmt.where(ProductVariant.id != exclude_id)
    if (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        logger.warning("variant.duplicate_sku", extra={"sku_code": sku_code})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"SKU '{sku_code}' already exists")
