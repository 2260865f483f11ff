import uuid
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select, update
from storefront.common.utils import now, parse_uuid
from storefront.schema.full_schema import Address, Credential, CredentialType, Role, UserRole, Users
from storefront.user.constants import logger


async def identify_user_by_pid(session, user_pid):
    try:
        pid = uuid.UUID(str(user_pid))
    except ValueError:
        return None
    stmt = select(Users.id, Users.role_version, Users.is_active).where(Users.public_id == pid)
    return (await session.execute(stmt)).first()


async def get_user(session, user_id) -> Users:
    user = (await session.execute(select(Users).where(Users.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def get_user_by_pid(session, user_pid) -> Users:
    pid = parse_uuid(user_pid, "User")
    user = (await session.execute(select(Users).where(Users.public_id == pid))).scalar_one_or_none()
    if not user:
        logger.warning("user.not_found", extra={"user_public_id": str(pid)})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def get_password_credential(session, user_id):
    stmt = select(Credential).where(Credential.user_id == user_id, Credential.type == CredentialType.PASSWORD)
    cred = (await session.execute(stmt)).scalar_one_or_none()
    if not cred:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Password credential not found")
    return cred


async def role_names_for_users(session, user_ids):
    if not user_ids:
        return {}
    stmt = (select(UserRole.user_id, Role.name)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id.in_(list(user_ids))))
    out = {}
    for uid, name in (await session.execute(stmt)).all():
        out.setdefault(uid, []).append(name)
    return out


def list_users_stmt(search: Optional[str], role: Optional[str], include_inactive: bool):
    stmt = select(Users)
    if not include_inactive:
        stmt = stmt.where(Users.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Users.email.ilike(like), Users.name.ilike(like)))
    if role:
        stmt = stmt.where(Users.id.in_(
            select(UserRole.user_id).join(Role, Role.id == UserRole.role_id).where(Role.name == role)))
    return stmt.order_by(Users.created_at.desc(), Users.id.desc())


async def replace_user_roles(session, user: Users, role_names):
    roles = (await session.execute(select(Role).where(Role.name.in_(role_names)))).scalars().all()
    found = {r.name for r in roles}
    missing = sorted(set(role_names) - found)
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown roles: {', '.join(missing)}")

    await session.execute(delete(UserRole).where(UserRole.user_id == user.id))
    for r in roles:
        session.add(UserRole(user_id=user.id, role_id=r.id))

    # outstanding access tokens carry the old role ids
    user.role_version = user.role_version + 1
    user.updated_at = now()
    return sorted(found)


# ---------------------------------------------------------------- addresses

async def list_addresses(session, user_id):
    stmt = (select(Address)
            .where(Address.user_id == user_id, Address.is_active.is_(True))
            .order_by(Address.is_default.desc(), Address.created_at.desc()))
    return (await session.execute(stmt)).scalars().all()


async def count_addresses(session, user_id):
    stmt = select(func.count(Address.id)).where(Address.user_id == user_id, Address.is_active.is_(True))
    return (await session.execute(stmt)).scalar_one()


async def get_address(session, user_id, address_pid) -> Address:
    pid = parse_uuid(address_pid, "Address")
    stmt = select(Address).where(Address.public_id == pid, Address.user_id == user_id, Address.is_active.is_(True))
    address = (await session.execute(stmt)).scalar_one_or_none()
    if not address:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    return address


async def clear_default_address(session, user_id):
    await session.execute(
        update(Address).where(Address.user_id == user_id, Address.is_default.is_(True)).values(is_default=False))
