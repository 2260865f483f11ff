from fastapi import APIRouter
from storefront.api import version_prefix
from storefront.auth.routes import auth_router
from storefront.cart.routes import carts_admin_router, carts_router
from storefront.catalog.routes import (brands_admin_router, brands_public_router, categories_admin_router,
                                       categories_public_router, suppliers_admin_router)
from storefront.common.routes import home_router
from storefront.coupons.routes import campaigns_admin_router, coupons_router, user_coupons_admin_router
from storefront.dashboard.routes import dashboard_admin_router
from storefront.favorites.routes import favorites_router
from storefront.inventory.routes import inventory_admin_router
from storefront.notifications.routes import notifications_admin_router, notifications_router
from storefront.orders.routes import orders_admin_router, orders_router
from storefront.payments.routes import payments_router
from storefront.products.routes import prods_admin_router, prods_public_router, variants_public_router
from storefront.reviews.routes import reviews_admin_router, reviews_router, variant_reviews_router
from storefront.support.routes import support_admin_router, support_router
from storefront.user.routes import user_admin_router, user_router
from storefront.wallet.routes import wallet_admin_router, wallet_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth", tags=["auth"])
public_routers.include_router(user_router, prefix="/users", tags=["users"])
public_routers.include_router(categories_public_router, prefix="/categories", tags=["catalog"])
public_routers.include_router(brands_public_router, prefix="/brands", tags=["catalog"])
public_routers.include_router(prods_public_router, prefix="/products", tags=["products-public"])
public_routers.include_router(variants_public_router, prefix="/product-variants", tags=["products-public"])
public_routers.include_router(variant_reviews_router, prefix="/product-variants", tags=["reviews"])
public_routers.include_router(carts_router, prefix="/cart", tags=["cart"])
public_routers.include_router(coupons_router, prefix="/coupons", tags=["coupons"])
public_routers.include_router(orders_router, prefix="/orders", tags=["orders"])
public_routers.include_router(payments_router, prefix="/payments", tags=["payments"])
public_routers.include_router(wallet_router, prefix="/wallet", tags=["wallet"])
public_routers.include_router(reviews_router, prefix="/reviews", tags=["reviews"])
public_routers.include_router(support_router, prefix="/support", tags=["support"])
public_routers.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
public_routers.include_router(favorites_router, prefix="/favorites", tags=["favorites"])
public_routers.include_router(home_router, tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(user_admin_router, prefix="/users", tags=["users-admin"])
admin_routers.include_router(categories_admin_router, prefix="/categories", tags=["catalog-admin"])
admin_routers.include_router(brands_admin_router, prefix="/brands", tags=["catalog-admin"])
admin_routers.include_router(suppliers_admin_router, prefix="/suppliers", tags=["catalog-admin"])
admin_routers.include_router(prods_admin_router, prefix="/products", tags=["products-admin"])
admin_routers.include_router(inventory_admin_router, prefix="/inventory", tags=["inventory-admin"])
admin_routers.include_router(carts_admin_router, prefix="/carts", tags=["cart-admin"])
admin_routers.include_router(campaigns_admin_router, prefix="/coupon-campaigns", tags=["coupons-admin"])
admin_routers.include_router(user_coupons_admin_router, prefix="/user-coupons", tags=["coupons-admin"])
admin_routers.include_router(orders_admin_router, prefix="/orders", tags=["orders-admin"])
admin_routers.include_router(wallet_admin_router, prefix="/wallets", tags=["wallet-admin"])
admin_routers.include_router(reviews_admin_router, prefix="/reviews", tags=["reviews-admin"])
admin_routers.include_router(support_admin_router, prefix="/support", tags=["support-admin"])
admin_routers.include_router(notifications_admin_router, prefix="/notifications", tags=["notifications-admin"])
admin_routers.include_router(dashboard_admin_router, prefix="/dashboard", tags=["dashboard-admin"])
