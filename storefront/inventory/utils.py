from storefront.common.utils import as_utc


def inventory_out(row):
    inv, variant_pid, sku_code, product_name = row[0], row[1], row[2], row[3]
    return {
        "variant_id": variant_pid,
        "sku_code": sku_code,
        "product_name": product_name,
        "stock_quantity": inv.stock_quantity,
        "min_stock_level": inv.min_stock_level,
        "is_low_stock": inv.stock_quantity <= inv.min_stock_level,
        "last_restocked_date": as_utc(inv.last_restocked_date),
        "last_sold_date": as_utc(inv.last_sold_date),
    }
