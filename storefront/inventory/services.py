from typing import Dict, Iterable, Tuple
from fastapi import HTTPException, status
from sqlalchemy import select, update
from storefront.common.utils import now
from storefront.schema.full_schema import Inventory, ProductVariant
from storefront.inventory.constants import logger


def resolve_pack(variant: ProductVariant) -> Tuple[int, int]:
    """(variant whose inventory row holds the stock, units of it per one of this variant)."""
    if variant.base_unit_variant_id is None:
        return variant.id, 1
    return variant.base_unit_variant_id, variant.pack_multiplier


async def stock_by_base(session, base_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(set(base_ids))
    if not ids:
        return {}
    rows = (await session.execute(
        select(Inventory.variant_id, Inventory.stock_quantity).where(Inventory.variant_id.in_(ids)))).all()
    return {r[0]: r[1] for r in rows}


def available_units(variant: ProductVariant, stocks: Dict[int, int]) -> int:
    base_id, multiplier = resolve_pack(variant)
    return stocks.get(base_id, 0) // multiplier


async def ensure_stock(session, required: Dict[int, int]) -> None:
    """required maps base variant id to base units needed."""
    stocks = await stock_by_base(session, required.keys())
    for base_id, amount in required.items():
        available = stocks.get(base_id, 0)
        if available < amount:
            logger.info("inventory.insufficient", extra={"variant_id": base_id, "requested": amount,
                                                         "available": available})
            raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED,
                                detail=f"Insufficient stock: requested {amount}, available {available}")


async def deduct_stock(session, base_id: int, amount: int) -> None:
    stmt = (update(Inventory)
            .where(Inventory.variant_id == base_id, Inventory.stock_quantity >= amount)
            .values(stock_quantity=Inventory.stock_quantity - amount, last_sold_date=now(), updated_at=now()))
    res = await session.execute(stmt)
    # zero rows means a concurrent order took the stock first
    if res.rowcount == 0:
        logger.warning("inventory.deduct.failed", extra={"variant_id": base_id, "amount": amount})
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail="Insufficient stock")


async def restore_stock(session, base_id: int, amount: int) -> None:
    stmt = (update(Inventory)
            .where(Inventory.variant_id == base_id)
            .values(stock_quantity=Inventory.stock_quantity + amount, updated_at=now()))
    res = await session.execute(stmt)
    if res.rowcount == 0:
        logger.error("inventory.restore.missing_row", extra={"variant_id": base_id, "amount": amount})
