from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action
from storefront.auth.dependencies import require_permissions
from storefront.catalog.repository import ensure_name_free, unique_slug
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.products.constants import PRODUCT_SORTS, logger
from storefront.products.models import ProductCreateIn, ProductUpdateIn, VariantCreateIn, VariantUpdateIn
from storefront.products.repository import (ensure_sku_free, get_product_by_pid, get_product_by_slug,
                                            get_variant_by_pid, list_variants, product_list_stmt)
from storefront.products.services import (create_variant, product_detail, resolve_base_variant,
                                          resolve_product_refs, variants_with_stock)
from storefront.products.utils import product_out
from storefront.schema.full_schema import Product, ProductVariant

prods_public_router = APIRouter()
variants_public_router = APIRouter()
prods_admin_router = APIRouter(dependencies=[require_permissions("product:write")])


@prods_public_router.get("")
async def get_products(q: Optional[str] = Query(None, max_length=100),
                       category: Optional[str] = Query(None),
                       brand: Optional[str] = Query(None),
                       min_price: Optional[int] = Query(None, ge=0),
                       max_price: Optional[int] = Query(None, ge=0),
                       sort: str = Query("newest"),
                       params: PageParams = Depends(page_params),
                       session: AsyncSession = Depends(get_session)):
    if sort not in PRODUCT_SORTS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"sort must be one of {', '.join(PRODUCT_SORTS)}")
    if min_price is not None and max_price is not None and min_price > max_price:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="min_price cannot exceed max_price")

    stmt = product_list_stmt(q, category, brand, min_price, max_price, sort)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([product_out(r[0], r[1]) for r in rows], meta))


@prods_public_router.get("/{slug}")
async def get_product_details(slug: str, session: AsyncSession = Depends(get_session)):
    product = await get_product_by_slug(session, slug)
    return success_response({"product": await product_detail(session, product)})


@variants_public_router.get("/{variant_id}")
async def get_variant_details(variant_id: str, session: AsyncSession = Depends(get_session)):
    variant = await get_variant_by_pid(session, variant_id, active_only=True)
    product = await session.get(Product, variant.product_id)
    data = (await variants_with_stock(session, [variant]))[0]
    data["product"] = {"id": product.public_id, "name": product.name, "slug": product.slug}
    return success_response({"variant": data})


# ---------------------------------------------------------------- admin products

@prods_admin_router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(request: Request, payload: ProductCreateIn, session: AsyncSession = Depends(get_session)):
    logger.info("product.create.attempt", extra={"user_public_id": request.state.user_public_id})

    await ensure_name_free(session, Product, payload.name)
    refs = await resolve_product_refs(session, payload.model_dump(include={"category_id", "brand_id", "supplier_id"}))
    product = Product(name=payload.name.strip(), slug=await unique_slug(session, Product, payload.name),
                      description=payload.description, **refs)
    session.add(product)
    await session.commit()

    logger.info("product.create.success", extra={"public_id": str(product.public_id)})
    log_admin_action(request, "PRODUCT_CREATED", "product", product.public_id, {"name": product.name})
    return success_response({"message": "product created", "product": await product_detail(session, product, True)},
                            status_code=status.HTTP_201_CREATED)


@prods_admin_router.get("")
async def admin_list_products(q: Optional[str] = Query(None, max_length=100),
                              include_inactive: bool = Query(False),
                              params: PageParams = Depends(page_params),
                              session: AsyncSession = Depends(get_session)):
    stmt = product_list_stmt(q=q, include_inactive=include_inactive)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([product_out(r[0], r[1]) for r in rows], meta))


@prods_admin_router.get("/{product_id}")
async def admin_get_product(product_id: str, session: AsyncSession = Depends(get_session)):
    product = await get_product_by_pid(session, product_id)
    return success_response({"product": await product_detail(session, product, include_inactive=True)})


@prods_admin_router.patch("/{product_id}")
async def update_product(request: Request, product_id: str, payload: ProductUpdateIn,
                         session: AsyncSession = Depends(get_session)):
    product = await get_product_by_pid(session, product_id)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name"):
        await ensure_name_free(session, Product, updates["name"], exclude_id=product.id)
        updates["slug"] = await unique_slug(session, Product, updates["name"], exclude_id=product.id)
    updates = await resolve_product_refs(session, updates)

    for field, value in updates.items():
        setattr(product, field, value)
    product.updated_at = now()
    await session.commit()

    log_admin_action(request, "PRODUCT_UPDATED", "product", product.public_id, {"fields": sorted(updates)})
    return success_response({"message": f"product {product.public_id} updated",
                             "product": await product_detail(session, product, include_inactive=True)})


@prods_admin_router.delete("/{product_id}")
async def delete_product(request: Request, product_id: str, session: AsyncSession = Depends(get_session)):
    product = await get_product_by_pid(session, product_id)
    product.is_active = False
    product.updated_at = now()
    await session.commit()

    log_admin_action(request, "PRODUCT_DELETED", "product", product.public_id)
    return success_response({"message": "Product deleted"})


# ---------------------------------------------------------------- admin variants

@prods_admin_router.get("/{product_id}/variants")
async def admin_list_variants(product_id: str, include_inactive: bool = Query(False),
                              session: AsyncSession = Depends(get_session)):
    product = await get_product_by_pid(session, product_id)
    variants = await list_variants(session, product.id, include_inactive)
    return success_response({"items": await variants_with_stock(session, variants)})


@prods_admin_router.post("/{product_id}/variants", status_code=status.HTTP_201_CREATED)
async def add_variant(request: Request, product_id: str, payload: VariantCreateIn,
                      session: AsyncSession = Depends(get_session)):
    product = await get_product_by_pid(session, product_id)
    variant = await create_variant(session, product, payload)
    await session.commit()

    log_admin_action(request, "VARIANT_CREATED", "product_variant", variant.public_id,
                     {"sku_code": variant.sku_code, "product": str(product.public_id)})
    return success_response({"variant": (await variants_with_stock(session, [variant]))[0]}, status.HTTP_201_CREATED)


async def _variant_of_product(session, product_id: str, variant_id: str):
    product = await get_product_by_pid(session, product_id)
    variant = await get_variant_by_pid(session, variant_id)
    if variant.product_id != product.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product variant not found")
    return product, variant


@prods_admin_router.patch("/{product_id}/variants/{variant_id}")
async def update_variant(request: Request, product_id: str, variant_id: str, payload: VariantUpdateIn,
                         session: AsyncSession = Depends(get_session)):
    product, variant = await _variant_of_product(session, product_id, variant_id)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("sku_code") and updates["sku_code"] != variant.sku_code:
        await ensure_sku_free(session, updates["sku_code"], exclude_id=variant.id)
    if updates.get("option_values") is not None:
        updates["option_values"] = [o.model_dump() for o in payload.option_values]
    if updates.get("is_active") and variant.base_unit_variant_id is not None:
        # reactivating a pack needs its base to still be usable
        base = await session.get(ProductVariant, variant.base_unit_variant_id)
        await resolve_base_variant(session, product, str(base.public_id), variant.id)

    for field, value in updates.items():
        setattr(variant, field, value)
    variant.updated_at = now()
    await session.commit()

    log_admin_action(request, "VARIANT_UPDATED", "product_variant", variant.public_id, {"fields": sorted(updates)})
    return success_response({"variant": (await variants_with_stock(session, [variant]))[0]})


@prods_admin_router.delete("/{product_id}/variants/{variant_id}")
async def delete_variant(request: Request, product_id: str, variant_id: str,
                         session: AsyncSession = Depends(get_session)):
    _, variant = await _variant_of_product(session, product_id, variant_id)
    variant.is_active = False
    variant.updated_at = now()
    await session.commit()

    log_admin_action(request, "VARIANT_DELETED", "product_variant", variant.public_id)
    return success_response({"message": "Product variant deleted"})
