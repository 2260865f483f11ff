from fastapi import HTTPException, status
from sqlalchemy import select
from storefront.common.utils import parse_uuid
from storefront.schema.full_schema import Inventory, Product, ProductVariant


def inventory_list_stmt(low_stock: bool = False):
    stmt = (select(Inventory, ProductVariant.public_id, ProductVariant.sku_code, Product.name)
            .join(ProductVariant, ProductVariant.id == Inventory.variant_id)
            .join(Product, Product.id == ProductVariant.product_id))
    if low_stock:
        stmt = stmt.where(Inventory.stock_quantity <= Inventory.min_stock_level)
    return stmt.order_by(Inventory.stock_quantity.asc(), Inventory.id.asc())


async def get_inventory_by_variant_pid(session, variant_pid):
    pid = parse_uuid(variant_pid, "Inventory")
    stmt = inventory_list_stmt().where(ProductVariant.public_id == pid)
    row = (await session.execute(stmt)).first()
    if not row:
        # packs have no row of their own
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory not found")
    return row
