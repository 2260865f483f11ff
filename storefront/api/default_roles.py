ADMIN_PERMISSIONS = [
    "product:write",
    "inventory:manage",
    "order:manage",
    "cart:view",
    "coupon:manage",
    "wallet:manage",
    "review:moderate",
    "ticket:manage",
    "notification:manage",
    "user:manage",
    "dashboard:view",
]

DEFAULT_ROLES = [
    {"name": "buyer", "description": "Default customer role", "permissions": []},
    {"name": "admin", "description": "Store administrator", "permissions": ADMIN_PERMISSIONS},
    {"name": "superadmin", "description": "Administrator who can also manage roles",
     "permissions": ADMIN_PERMISSIONS + ["role:manage"]},
]
