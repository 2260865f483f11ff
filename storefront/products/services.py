from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import select
from storefront.catalog.repository import get_by_pid, public_ids_by_ids, unique_slug
from storefront.inventory.services import available_units, stock_by_base, resolve_pack
from storefront.products.repository import ensure_sku_free, get_variant_by_pid, list_variants
from storefront.products.utils import product_out, variant_out
from storefront.schema.full_schema import Brand, Category, Inventory, Product, ProductVariant, Supplier
from storefront.products.constants import logger


async def resolve_product_refs(session, updates: dict) -> dict:
    """Swap category/brand/supplier public ids for internal ids."""
    for key, model in (("category_id", Category), ("brand_id", Brand), ("supplier_id", Supplier)):
        if key in updates:
            pid = updates[key]
            updates[key] = (await get_by_pid(session, model, pid)).id if pid else None
    return updates


async def resolve_base_variant(session, product: Product, base_pid: Optional[str], variant_id: Optional[int] = None):
    if base_pid is None:
        return None
    base = await get_variant_by_pid(session, base_pid)
    if base.product_id != product.id or not base.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Base unit must be an active variant of the same product")
    if base.base_unit_variant_id is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Base unit cannot itself be a pack")
    if variant_id is not None and base.id == variant_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Variant cannot be its own base unit")
    return base


async def create_variant(session, product: Product, payload) -> ProductVariant:
    await ensure_sku_free(session, payload.sku_code)
    base = await resolve_base_variant(session, product, payload.base_unit_variant_id)

    options = [o.model_dump() for o in payload.option_values]
    slug_text = " ".join([product.slug] + [o["option_value"] for o in options]) if options else f"{product.slug} {payload.sku_code}"
    variant = ProductVariant(
        product_id=product.id,
        sku_code=payload.sku_code,
        slug=await unique_slug(session, ProductVariant, slug_text),
        price=payload.price,
        option_values=options,
        base_unit_variant_id=base.id if base else None,
        pack_multiplier=payload.pack_multiplier if base else 1,
        sort_order=payload.sort_order,
    )
    session.add(variant)
    await session.flush()

    # only base units hold stock
    if base is None:
        session.add(Inventory(variant_id=variant.id, stock_quantity=payload.initial_stock,
                              min_stock_level=payload.min_stock_level))
        await session.flush()

    logger.info("variant.created", extra={"public_id": str(variant.public_id), "sku_code": variant.sku_code,
                                          "is_pack": base is not None})
    return variant


async def variants_with_stock(session, variants):
    """Serialize variants with availability resolved through their base unit."""
    stocks = await stock_by_base(session, [resolve_pack(v)[0] for v in variants])
    base_pids = await public_ids_by_ids(session, ProductVariant, [v.base_unit_variant_id for v in variants])
    out = []
    for v in variants:
        available = available_units(v, stocks)
        out.append(variant_out(v, base_pids.get(v.base_unit_variant_id), available))
    return out


async def product_detail(session, product: Product, include_inactive: bool = False):
    variants = await list_variants(session, product.id, include_inactive)

    refs = {}
    for key, model in (("category", Category), ("brand", Brand)):
        ref_id = getattr(product, f"{key}_id")
        if ref_id is None:
            refs[key] = None
            continue
        row = (await session.execute(select(model.public_id, model.name, model.slug)
                                     .where(model.id == ref_id))).first()
        refs[key] = {"id": row[0], "name": row[1], "slug": row[2]} if row else None

    data = product_out(product)
    data.update(refs)
    data["variants"] = await variants_with_stock(session, variants)
    return data
