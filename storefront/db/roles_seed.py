from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.default_roles import DEFAULT_ROLES
from storefront.common.logging_setup import get_logger
from storefront.schema.full_schema import Permission, Role, RolePermission

logger = get_logger("storefront.db")


async def seed_roles(session: AsyncSession):
    """Idempotently create the default roles and their permission links."""
    perm_names = sorted({p for r in DEFAULT_ROLES for p in r["permissions"]})

    existing = (await session.execute(select(Permission).where(Permission.name.in_(perm_names)))).scalars().all()
    perms = {p.name: p for p in existing}
    for name in perm_names:
        if name not in perms:
            perm = Permission(name=name)
            session.add(perm)
            perms[name] = perm
    await session.flush()

    for r in DEFAULT_ROLES:
        role = (await session.execute(select(Role).where(Role.name == r["name"]))).scalar_one_or_none()
        if not role:
            role = Role(name=r["name"], description=r["description"])
            session.add(role)
            await session.flush()

        linked = set((await session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == role.id))).scalars().all())
        for pname in r["permissions"]:
            if perms[pname].id not in linked:
                session.add(RolePermission(role_id=role.id, permission_id=perms[pname].id))

    await session.commit()
    logger.info("roles.seeded", extra={"roles": [r["name"] for r in DEFAULT_ROLES]})
