from storefront.common.utils import to_public


def category_out(category, parent_public_id=None):
    data = to_public(category, exclude={"parent_id"})
    data["parent_id"] = parent_public_id
    return data


def brand_out(brand):
    return to_public(brand)


def supplier_out(supplier):
    return to_public(supplier)
