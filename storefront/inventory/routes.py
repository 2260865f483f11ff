from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action
from storefront.auth.dependencies import require_permissions
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.inventory.models import InventoryUpdateIn
from storefront.inventory.repository import get_inventory_by_variant_pid, inventory_list_stmt
from storefront.inventory.utils import inventory_out
from storefront.inventory.constants import logger

inventory_admin_router = APIRouter(dependencies=[require_permissions("inventory:manage")])


@inventory_admin_router.get("")
async def list_inventory(low_stock: bool = Query(False), params: PageParams = Depends(page_params),
                         session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, inventory_list_stmt(low_stock), params)
    return success_response(page_payload([inventory_out(r) for r in rows], meta))


@inventory_admin_router.get("/low-stock")
async def list_low_stock(params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, inventory_list_stmt(low_stock=True), params)
    return success_response(page_payload([inventory_out(r) for r in rows], meta))


@inventory_admin_router.get("/{variant_id}")
async def get_inventory(variant_id: str, session: AsyncSession = Depends(get_session)):
    row = await get_inventory_by_variant_pid(session, variant_id)
    return success_response({"inventory": inventory_out(row)})


@inventory_admin_router.patch("/{variant_id}")
async def update_inventory(request: Request, variant_id: str, payload: InventoryUpdateIn,
                           session: AsyncSession = Depends(get_session)):
    row = await get_inventory_by_variant_pid(session, variant_id)
    inv = row[0]
    previous = inv.stock_quantity

    if payload.stock_quantity is not None:
        new_quantity = payload.stock_quantity
    elif payload.adjustment is not None:
        new_quantity = previous + payload.adjustment
    else:
        new_quantity = previous

    if new_quantity < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Stock cannot go negative (current {previous})")

    inv.stock_quantity = new_quantity
    if new_quantity > previous:
        inv.last_restocked_date = now()
    if payload.min_stock_level is not None:
        inv.min_stock_level = payload.min_stock_level
    inv.updated_at = now()
    await session.commit()

    logger.info("inventory.updated", extra={"variant_id": str(row[1]), "from": previous, "to": new_quantity})
    log_admin_action(request, "INVENTORY_UPDATED", "inventory", row[1],
                     {"stock_quantity": {"from": previous, "to": new_quantity}, "reason": payload.reason})
    return success_response({"inventory": inventory_out(row)})
