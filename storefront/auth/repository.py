from datetime import timedelta
from fastapi import HTTPException, status
from sqlalchemy import select, update
from storefront.auth.utils import hash_token, make_refresh_plain, verify_password
from storefront.auth.constants import REFRESH_TOKEN_EXPIRE_DAYS, logger
from storefront.common.utils import as_utc, now
from storefront.schema.full_schema import Credential, CredentialType, RefreshToken, Role, UserRole, Users, VerificationCode


async def user_id_by_email(session, email):
    stmt = select(Users.id).where(Users.email == email)
    return (await session.execute(stmt)).scalar_one_or_none()


async def identify_user(session, email, password):
    email = email.strip().lower()
    stmt = (
        select(Users.id, Users.public_id, Users.role_version, Users.is_active, Credential.password_hash)
        .join(Credential, (Credential.user_id == Users.id) & (Credential.type == CredentialType.PASSWORD))
        .where(Users.email == email)
    )
    user = (await session.execute(stmt)).first()

    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        logger.warning("auth.user.invalid_credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not user.is_active:
        logger.warning("auth.user.inactive", extra={"user_public_id": str(user.public_id)})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    return user


async def get_user_role_ids(session, user_id):
    stmt = select(Role.id).join(UserRole, Role.id == UserRole.role_id).where(UserRole.user_id == user_id)
    return list((await session.execute(stmt)).scalars().all())


async def get_user_role_names(session, user_id):
    stmt = select(Role.name).join(UserRole, Role.id == UserRole.role_id).where(UserRole.user_id == user_id)
    return list((await session.execute(stmt)).scalars().all())


async def role_by_name(session, name):
    return (await session.execute(select(Role).where(Role.name == name))).scalar_one_or_none()


async def revoke_all_tokens_per_user(session, user_id, revoked_by):
    await session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=now(), revoked_by=revoked_by)
    )


async def save_refresh_token(session, user_id):
    refresh_plain = make_refresh_plain()
    issued = now()
    session.add(RefreshToken(
        user_id=user_id,
        token_hash=hash_token(refresh_plain),
        issued_at=issued,
        expires_at=issued + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    return refresh_plain


async def get_refresh_token(session, plain_token, take_lock: bool = False):
    stmt = select(RefreshToken).where(RefreshToken.token_hash == hash_token(plain_token))
    if take_lock:
        stmt = stmt.with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


async def fetch_user_claims(session, user_id):
    user = (await session.execute(
        select(Users.public_id, Users.role_version, Users.is_active).where(Users.id == user_id))).first()
    if not user or not user.is_active:
        logger.warning("auth.user.claims_not_found")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return {
        "user_public_id": user.public_id,
        "role_version": user.role_version,
        "role_ids": await get_user_role_ids(session, user_id),
    }


async def save_verification_code(session, user_id, channel, code, ttl_minutes):
    # only the newest code stays usable
    await session.execute(
        update(VerificationCode)
        .where(VerificationCode.user_id == user_id, VerificationCode.channel == channel,
               VerificationCode.consumed_at.is_(None))
        .values(consumed_at=now())
    )
    session.add(VerificationCode(
        user_id=user_id,
        channel=channel,
        code_hash=hash_token(code),
        expires_at=now() + timedelta(minutes=ttl_minutes),
    ))


async def latest_verification_code(session, user_id, channel):
    stmt = (
        select(VerificationCode)
        .where(VerificationCode.user_id == user_id, VerificationCode.channel == channel,
               VerificationCode.consumed_at.is_(None))
        .order_by(VerificationCode.id.desc())
        .limit(1)
    )
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is not None and as_utc(row.expires_at) <= now():
        return None
    return row
