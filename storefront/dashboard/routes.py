from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.auth.dependencies import require_permissions
from storefront.common.utils import success_response
from storefront.dashboard.repository import overview, sales_series, top_products
from storefront.db.dependencies import get_session
from storefront.dashboard.constants import MAX_SALES_DAYS, logger

dashboard_admin_router = APIRouter(dependencies=[require_permissions("dashboard:view")])


@dashboard_admin_router.get("")
async def get_dashboard(request: Request, session: AsyncSession = Depends(get_session)):
    data = await overview(session)
    logger.debug("dashboard.overview.served", extra={"admin_public_id": str(request.state.user_public_id),
                                                      "orders": data["totals"]["orders"]})
    return success_response({"dashboard": data})


@dashboard_admin_router.get("/sales")
async def get_sales(days: int = Query(30, ge=1, le=MAX_SALES_DAYS), session: AsyncSession = Depends(get_session)):
    return success_response({"days": days, "series": await sales_series(session, days)})


@dashboard_admin_router.get("/top-products")
async def get_top_products(limit: int = Query(10, ge=1, le=100), session: AsyncSession = Depends(get_session)):
    return success_response({"items": await top_products(session, limit)})
