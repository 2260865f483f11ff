from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action
from storefront.auth.dependencies import require_permissions
from storefront.catalog.models import (BrandCreateIn, BrandUpdateIn, CategoryCreateIn, CategoryUpdateIn,
                                       SupplierCreateIn, SupplierUpdateIn)
from storefront.catalog.repository import (ensure_name_free, get_by_pid, get_category_by_slug, is_referenced,
                                           list_stmt, public_ids_by_ids, unique_slug)
from storefront.catalog.services import attach_category_image
from storefront.catalog.utils import brand_out, category_out, supplier_out
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.schema.full_schema import Brand, Category, Supplier
from storefront.catalog.constants import logger

categories_public_router = APIRouter()
brands_public_router = APIRouter()
categories_admin_router = APIRouter()
brands_admin_router = APIRouter()
suppliers_admin_router = APIRouter()


async def _categories_out(session, categories):
    parents = await public_ids_by_ids(session, Category, [c.parent_id for c in categories])
    return [category_out(c, parents.get(c.parent_id)) for c in categories]


async def _resolve_parent(session, parent_pid, category_id=None):
    if parent_pid is None:
        return None
    parent = await get_by_pid(session, Category, parent_pid)
    if category_id is not None and parent.id == category_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category cannot be its own parent")
    return parent.id


async def _delete_row(request, session, model, row, hard: bool, confirm: bool):
    if hard:
        if not confirm:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Hard delete requires confirm=true")
        if await is_referenced(session, model, row.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail=f"{model.__name__} is referenced and cannot be deleted")
        await session.delete(row)
    else:
        row.is_active = False
        row.updated_at = now()
    await session.commit()

    log_admin_action(request, f"{model.__name__.upper()}_DELETED", model.__tablename__, row.public_id,
                     {"hard": hard})
    return success_response({"message": f"{model.__name__} deleted", "hard": hard})


# ---------------------------------------------------------------- public

@categories_public_router.get("")
async def get_categories(params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_stmt(Category, include_inactive=False), params)
    return success_response(page_payload(await _categories_out(session, [r[0] for r in rows]), meta))


@categories_public_router.get("/{slug}")
async def get_category(slug: str, session: AsyncSession = Depends(get_session)):
    category = await get_category_by_slug(session, slug)
    return success_response({"category": (await _categories_out(session, [category]))[0]})


@brands_public_router.get("")
async def get_brands(params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_stmt(Brand, include_inactive=False), params)
    return success_response(page_payload([brand_out(r[0]) for r in rows], meta))


# ---------------------------------------------------------------- admin categories

@categories_admin_router.post("", status_code=status.HTTP_201_CREATED, dependencies=[require_permissions("product:write")])
async def create_category(request: Request, payload: CategoryCreateIn, background_tasks: BackgroundTasks,
                          session: AsyncSession = Depends(get_session)):
    await ensure_name_free(session, Category, payload.name)
    category = Category(
        name=payload.name.strip(),
        slug=await unique_slug(session, Category, payload.name),
        description=payload.description,
        parent_id=await _resolve_parent(session, payload.parent_id),
        image_url=payload.image_url,
    )
    session.add(category)
    await session.commit()

    if not category.image_url:
        background_tasks.add_task(attach_category_image, category.id, category.name)

    logger.info("category.created", extra={"public_id": str(category.public_id)})
    log_admin_action(request, "CATEGORY_CREATED", "category", category.public_id, {"name": category.name})
    return success_response({"category": (await _categories_out(session, [category]))[0]}, status.HTTP_201_CREATED)


@categories_admin_router.get("", dependencies=[require_permissions("product:write")])
async def admin_list_categories(include_inactive: bool = Query(False), search: Optional[str] = Query(None),
                                params: PageParams = Depends(page_params),
                                session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_stmt(Category, include_inactive, search), params)
    return success_response(page_payload(await _categories_out(session, [r[0] for r in rows]), meta))


@categories_admin_router.get("/{category_id}", dependencies=[require_permissions("product:write")])
async def admin_get_category(category_id: str, session: AsyncSession = Depends(get_session)):
    category = await get_by_pid(session, Category, category_id)
    return success_response({"category": (await _categories_out(session, [category]))[0]})


@categories_admin_router.patch("/{category_id}", dependencies=[require_permissions("product:write")])
async def update_category(request: Request, category_id: str, payload: CategoryUpdateIn,
                          session: AsyncSession = Depends(get_session)):
    category = await get_by_pid(session, Category, category_id)
    updates = payload.model_dump(exclude_unset=True)

    if "name" in updates and updates["name"]:
        await ensure_name_free(session, Category, updates["name"], exclude_id=category.id)
        updates["slug"] = await unique_slug(session, Category, updates["name"], exclude_id=category.id)
    if "parent_id" in updates:
        updates["parent_id"] = await _resolve_parent(session, updates["parent_id"], category.id)

    for field, value in updates.items():
        setattr(category, field, value)
    category.updated_at = now()
    await session.commit()

    log_admin_action(request, "CATEGORY_UPDATED", "category", category.public_id, {"fields": sorted(updates)})
    return success_response({"category": (await _categories_out(session, [category]))[0]})


@categories_admin_router.delete("/{category_id}", dependencies=[require_permissions("product:write")])
async def delete_category(request: Request, category_id: str, hard: bool = Query(False), confirm: bool = Query(False),
                          session: AsyncSession = Depends(get_session)):
    category = await get_by_pid(session, Category, category_id)
    return await _delete_row(request, session, Category, category, hard, confirm)


# ---------------------------------------------------------------- admin brands

@brands_admin_router.post("", status_code=status.HTTP_201_CREATED, dependencies=[require_permissions("product:write")])
async def create_brand(request: Request, payload: BrandCreateIn, session: AsyncSession = Depends(get_session)):
    await ensure_name_free(session, Brand, payload.name)
    brand = Brand(name=payload.name.strip(), slug=await unique_slug(session, Brand, payload.name),
                  description=payload.description, logo_url=payload.logo_url)
    session.add(brand)
    await session.commit()

    log_admin_action(request, "BRAND_CREATED", "brand", brand.public_id, {"name": brand.name})
    return success_response({"brand": brand_out(brand)}, status.HTTP_201_CREATED)


@brands_admin_router.get("", dependencies=[require_permissions("product:write")])
async def admin_list_brands(include_inactive: bool = Query(False), search: Optional[str] = Query(None),
                            params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_stmt(Brand, include_inactive, search), params)
    return success_response(page_payload([brand_out(r[0]) for r in rows], meta))


@brands_admin_router.get("/{brand_id}", dependencies=[require_permissions("product:write")])
async def admin_get_brand(brand_id: str, session: AsyncSession = Depends(get_session)):
    return success_response({"brand": brand_out(await get_by_pid(session, Brand, brand_id))})


@brands_admin_router.patch("/{brand_id}", dependencies=[require_permissions("product:write")])
async def update_brand(request: Request, brand_id: str, payload: BrandUpdateIn,
                       session: AsyncSession = Depends(get_session)):
    brand = await get_by_pid(session, Brand, brand_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name"):
        await ensure_name_free(session, Brand, updates["name"], exclude_id=brand.id)
        updates["slug"] = await unique_slug(session, Brand, updates["name"], exclude_id=brand.id)

    for field, value in updates.items():
        setattr(brand, field, value)
    brand.updated_at = now()
    await session.commit()

    log_admin_action(request, "BRAND_UPDATED", "brand", brand.public_id, {"fields": sorted(updates)})
    return success_response({"brand": brand_out(brand)})


@brands_admin_router.delete("/{brand_id}", dependencies=[require_permissions("product:write")])
async def delete_brand(request: Request, brand_id: str, hard: bool = Query(False), confirm: bool = Query(False),
                       session: AsyncSession = Depends(get_session)):
    brand = await get_by_pid(session, Brand, brand_id)
    return await _delete_row(request, session, Brand, brand, hard, confirm)


# ---------------------------------------------------------------- admin suppliers

@suppliers_admin_router.post("", status_code=status.HTTP_201_CREATED, dependencies=[require_permissions("product:write")])
async def create_supplier(request: Request, payload: SupplierCreateIn, session: AsyncSession = Depends(get_session)):
    await ensure_name_free(session, Supplier, payload.name)
    supplier = Supplier(**payload.model_dump())
    supplier.name = supplier.name.strip()
    session.add(supplier)
    await session.commit()

    log_admin_action(request, "SUPPLIER_CREATED", "supplier", supplier.public_id, {"name": supplier.name})
    return success_response({"supplier": supplier_out(supplier)}, status.HTTP_201_CREATED)


@suppliers_admin_router.get("", dependencies=[require_permissions("product:write")])
async def admin_list_suppliers(include_inactive: bool = Query(False), search: Optional[str] = Query(None),
                               params: PageParams = Depends(page_params),
                               session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, list_stmt(Supplier, include_inactive, search), params)
    return success_response(page_payload([supplier_out(r[0]) for r in rows], meta))


@suppliers_admin_router.get("/{supplier_id}", dependencies=[require_permissions("product:write")])
async def admin_get_supplier(supplier_id: str, session: AsyncSession = Depends(get_session)):
    return success_response({"supplier": supplier_out(await get_by_pid(session, Supplier, supplier_id))})


@suppliers_admin_router.patch("/{supplier_id}", dependencies=[require_permissions("product:write")])
async def update_supplier(request: Request, supplier_id: str, payload: SupplierUpdateIn,
                          session: AsyncSession = Depends(get_session)):
    supplier = await get_by_pid(session, Supplier, supplier_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("name"):
        await ensure_name_free(session, Supplier, updates["name"], exclude_id=supplier.id)

    for field, value in updates.items():
        setattr(supplier, field, value)
    supplier.updated_at = now()
    await session.commit()

    log_admin_action(request, "SUPPLIER_UPDATED", "supplier", supplier.public_id, {"fields": sorted(updates)})
    return success_response({"supplier": supplier_out(supplier)})


@suppliers_admin_router.delete("/{supplier_id}", dependencies=[require_permissions("product:write")])
async def delete_supplier(request: Request, supplier_id: str, hard: bool = Query(False), confirm: bool = Query(False),
                          session: AsyncSession = Depends(get_session)):
    supplier = await get_by_pid(session, Supplier, supplier_id)
    return await _delete_row(request, session, Supplier, supplier, hard, confirm)
