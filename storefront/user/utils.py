from storefront.common.utils import to_public


def user_out(user, roles=None):
    data = to_public(user, exclude={"role_version"})
    data["roles"] = roles or []
    return data


def address_out(address):
    return to_public(address, exclude={"user_id", "is_active"})
