import asyncio
from sqlalchemy import select
from storefront.auth.utils import hash_password
from storefront.common.logging_setup import get_logger, setup_logging, shutdown_logging
from storefront.config.admin_config import admin_config
from storefront.config.settings import config_settings
from storefront.db.connection import async_engine, async_session
from storefront.db.roles_seed import seed_roles
from storefront.schema.full_schema import Credential, CredentialType, Users
from storefront.user.repository import replace_user_roles

logger = get_logger("storefront.seed")


async def ensure_admin(session, email: str, password: str, name: str = "Admin", role: str = "superadmin") -> Users:
    """Create or promote the bootstrap admin. Resets the password on every run."""
    user = (await session.execute(select(Users).where(Users.email == email.lower()))).scalar_one_or_none()
    if not user:
        user = Users(email=email.lower(), name=name)
        session.add(user)
        await session.flush()
        logger.info("seed.admin.user_created", extra={"user_public_id": str(user.public_id)})

    cred = (await session.execute(
        select(Credential).where(Credential.user_id == user.id, Credential.type == CredentialType.PASSWORD)
    )).scalar_one_or_none()
    if not cred:
        session.add(Credential(user_id=user.id, type=CredentialType.PASSWORD, provider=config_settings.SELF_PROVIDER,
                               password_hash=hash_password(password)))
    else:
        cred.password_hash = hash_password(password)

    await replace_user_roles(session, user, [role])
    await session.commit()
    logger.info("seed.admin.ready", extra={"user_public_id": str(user.public_id), "role": role})
    return user


async def main():
    if not admin_config.ADMIN_EMAIL or not admin_config.ADMIN_PASSWORD:
        raise SystemExit("Set ADMIN_EMAIL and ADMIN_PASSWORD before running")

    setup_logging()
    try:
        async with async_session() as session:
            await seed_roles(session)
            await ensure_admin(session, admin_config.ADMIN_EMAIL, admin_config.ADMIN_PASSWORD)
    finally:
        await async_engine.dispose()
        shutdown_logging()


if __name__ == "__main__":
    asyncio.run(main())
