from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import as_utc, success_response
from storefront.db.dependencies import get_session
from storefront.favorites.models import FavoriteIn
from storefront.favorites.repository import favorites_stmt, get_favorite
from storefront.inventory.services import available_units, resolve_pack, stock_by_base
from storefront.products.repository import get_variant_by_pid
from storefront.schema.full_schema import Favorite
from storefront.user.dependencies import current_user_id

favorites_router = APIRouter()


@favorites_router.get("")
async def get_my_favorites(request: Request, params: PageParams = Depends(page_params),
                           session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, favorites_stmt(current_user_id(request)), params)
    stocks = await stock_by_base(session, [resolve_pack(r[1])[0] for r in rows])

    items = []
    for favorite, variant, product_name, product_slug, product_active in rows:
        available = available_units(variant, stocks)
        items.append({
            "product_variant_id": variant.public_id,
            "sku_code": variant.sku_code,
            "product_name": product_name,
            "product_slug": product_slug,
            "price": variant.price,
            "is_available": bool(variant.is_active and product_active),
            "in_stock": available > 0,
            "added_at": as_utc(favorite.created_at),
        })
    return success_response(page_payload(items, meta))


@favorites_router.post("", status_code=status.HTTP_201_CREATED)
async def add_favorite(request: Request, payload: FavoriteIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    variant = await get_variant_by_pid(session, payload.product_variant_id, active_only=True)
    if await get_favorite(session, user_id, variant.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already in favorites")

    session.add(Favorite(user_id=user_id, variant_id=variant.id))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already in favorites")
    return success_response({"product_variant_id": variant.public_id}, status.HTTP_201_CREATED)


@favorites_router.delete("/{variant_id}")
async def remove_favorite(request: Request, variant_id: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    variant = await get_variant_by_pid(session, variant_id)
    favorite = await get_favorite(session, user_id, variant.id)
    if favorite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Favorite not found")

    await session.delete(favorite)
    await session.commit()
    return success_response({"message": "Removed from favorites"})
