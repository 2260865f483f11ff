from contextlib import asynccontextmanager
from fastapi import FastAPI
from storefront.api import cur_version, version_prefix
from storefront.api.routers import admin_routers, public_routers
from storefront.common.background import drain_pending
from storefront.common.custom_exceptions import register_all_exceptions
from storefront.common.logging_setup import get_logger, setup_logging, shutdown_logging
from storefront.config.admin_config import admin_config
from storefront.config.settings import config_settings
from storefront.db.connection import async_engine, async_session
from storefront.db.roles_seed import seed_roles
from storefront.middlewares.auth_middleware import AuthenticationMiddleware
from storefront.middlewares.rate_limit_middleware import RateLimitMiddleware
from storefront.middlewares.request_id_middleware import RequestIdMiddleware
from storefront.payments.webhooks import razorpay_webhook
from storefront.rate_limiting import redis_client as redis_module

logger = get_logger("storefront.app")

rzpay_webhook_path = version_prefix + config_settings.RZPAY_WEBHOOK_PATH

AUTH_EXEMPT_PATHS = [
    f"{version_prefix}/auth/signup",
    f"{version_prefix}/auth/login",
    f"{version_prefix}/auth/refresh",
    f"{version_prefix}/auth/logout",
    f"{version_prefix}/health",
    f"{version_prefix}/products",
    f"{version_prefix}/product-variants",
    f"{version_prefix}/categories",
    f"{version_prefix}/brands",
    f"{version_prefix}/webhooks",
    "/docs",
    "/openapi.json",
]


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    if admin_config.SEED_ROLES_ON_STARTUP:
        async with async_session() as session:
            await seed_roles(session)
    logger.info("app.startup", extra={"env": admin_config.ENV, "version": cur_version})

    try:
        yield
    finally:
        # new requests are no longer accepted here
        await drain_pending()
        await redis_module.redis_client.aclose()
        await async_engine.dispose()
        logger.info("app.shutdown")
        shutdown_logging()


def create_app():
    app = FastAPI(
        title="Storefront",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    app.add_api_route(rzpay_webhook_path, razorpay_webhook, methods=["POST"], name="razorpay_webhook",
                      tags=["webhooks"])

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    if admin_config.RATE_LIMIT_ENABLED:
        app.add_middleware(RateLimitMiddleware, paths=[f"{version_prefix}/auth/"])
    app.add_middleware(AuthenticationMiddleware, session_maker=async_session, paths=AUTH_EXEMPT_PATHS)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
