from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import func, select
from storefront.common.utils import parse_uuid, slugify
from storefront.schema.full_schema import Category, Product
from storefront.catalog.constants import logger


async def unique_slug(session, model, text: str, exclude_id: Optional[int] = None) -> str:
    """Slug from text, suffixed -1, -2 ... until it is free."""
    base = slugify(text) or "item"
    candidate, n = base, 0
    while True:
        stmt = select(model.id).where(model.slug == candidate)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if (await session.execute(stmt.limit(1))).scalar_one_or_none() is None:
            return candidate
        n += 1
        candidate = f"{base}-{n}"


async def ensure_name_free(session, model, name: str, exclude_id: Optional[int] = None):
    stmt = select(model.id).where(func.lower(model.name) == name.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if (await session.execute(stmt.limit(1))).scalar_one_or_none() is not None:
        logger.warning("catalog.duplicate_name", extra={"table": model.__tablename__})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail=f"{model.__name__} with name '{name}' already exists")


async def get_by_pid(session, model, pid, include_inactive: bool = True):
    stmt = select(model).where(model.public_id == parse_uuid(pid, model.__name__))
    if not include_inactive:
        stmt = stmt.where(model.is_active.is_(True))
    row = (await session.execute(stmt)).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{model.__name__} not found")
    return row


async def get_category_by_slug(session, slug: str):
    stmt = select(Category).where(Category.slug == slug, Category.is_active.is_(True))
    row = (await session.execute(stmt)).scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return row


def list_stmt(model, include_inactive: bool, search: Optional[str] = None):
    stmt = select(model)
    if not include_inactive:
        stmt = stmt.where(model.is_active.is_(True))
    if search:
        stmt = stmt.where(model.name.ilike(f"%{search.strip()}%"))
    return stmt.order_by(model.name.asc())


async def is_referenced(session, model, row_id: int) -> bool:
    """Whether products (or child categories) still point at this row."""
    fk = {"category": Product.category_id, "brand": Product.brand_id, "supplier": Product.supplier_id}[model.__tablename__]
    used = (await session.execute(select(Product.id).where(fk == row_id).limit(1))).scalar_one_or_none()
    if used is not None:
        return True
    if model is Category:
        child = (await session.execute(select(Category.id).where(Category.parent_id == row_id).limit(1))).scalar_one_or_none()
        return child is not None
    return False


async def public_ids_by_ids(session, model, ids):
    ids = [i for i in set(ids) if i is not None]
    if not ids:
        return {}
    rows = (await session.execute(select(model.id, model.public_id).where(model.id.in_(ids)))).all()
    return {r[0]: r[1] for r in rows}
