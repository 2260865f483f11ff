from storefront.common.utils import to_public


def product_out(product, min_price=None):
    data = to_public(product, exclude={"category_id", "brand_id", "supplier_id"})
    if min_price is not None:
        data["min_price"] = min_price
    return data


def variant_out(variant, base_public_id=None, available=None):
    data = to_public(variant, exclude={"product_id", "base_unit_variant_id"})
    data["base_unit_variant_id"] = base_public_id
    data["is_pack"] = variant.base_unit_variant_id is not None
    if available is not None:
        data["available_quantity"] = available
        data["in_stock"] = available > 0
    return data
