from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from storefront.auth.repository import (fetch_user_claims, get_refresh_token, get_user_role_ids, identify_user,
                                        latest_verification_code, revoke_all_tokens_per_user, role_by_name,
                                        save_refresh_token, save_verification_code, user_id_by_email)
from storefront.auth.utils import create_access_token, generate_otp, hash_password, hash_token
from storefront.auth.constants import VERIFICATION_CODE_TTL_MINUTES, VERIFICATION_MAX_ATTEMPTS, logger
from storefront.common.background import fire_and_forget
from storefront.common.utils import as_utc, now
from storefront.config.settings import config_settings
from storefront.messaging.email import send_email
from storefront.messaging.sms import send_sms
from storefront.schema.full_schema import Credential, CredentialType, Role, UserRole, Users, VerificationChannel


async def link_user_role(session, user_id, role_name=None):
    role_name = role_name or config_settings.DEFAULT_ROLE
    role = await role_by_name(session, role_name)
    if not role:
        role = Role(name=role_name)
        session.add(role)
        await session.flush()

    session.add(UserRole(user_id=user_id, role_id=role.id))


async def create_user(session, payload):

    if await user_id_by_email(session, payload.email):
        logger.warning("user.duplicate")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with email already exists")

    user = Users(email=payload.email, name=payload.name, phone=payload.phone)
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("user.create.integrity_error")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User with email already exists")

    session.add(Credential(user_id=user.id, type=CredentialType.PASSWORD,
                           provider=config_settings.SELF_PROVIDER,
                           password_hash=hash_password(payload.password)))
    await link_user_role(session, user.id)

    logger.info("user.created", extra={"user_public_id": str(user.public_id)})
    return user


async def issue_auth_tokens(session, payload):

    user = await identify_user(session, payload.email, payload.password)

    refresh_token = await save_refresh_token(session, user.id)
    user_roles = await get_user_role_ids(session, user.id)
    access_token = create_access_token(user.public_id, user_roles, role_version=user.role_version)

    logger.info("auth.tokens.issued", extra={"user_public_id": str(user.public_id)})
    return access_token, refresh_token


async def rotate_refresh_token(session, plain_token):
    """Revoke the presented refresh token and hand out a new pair."""
    token_row = await get_refresh_token(session, plain_token, take_lock=True)

    if not token_row:
        logger.warning("auth.refresh.validate_failed", extra={"reason": "unknown_token"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    if token_row.revoked_at is not None:
        # a rotated token being replayed, kill every session of the user
        logger.error("auth.refresh.token_reuse_detected", extra={"revoked_by": token_row.revoked_by,
                                                                 "security_event": "token_reuse"})
        await revoke_all_tokens_per_user(session, token_row.user_id, revoked_by="reuse_detection")
        await session.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token revoked")

    if as_utc(token_row.expires_at) <= now():
        logger.warning("auth.refresh.validate_failed", extra={"reason": "token_expired"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")

    token_row.revoked_at = now()
    token_row.revoked_by = "rotation"

    claims = await fetch_user_claims(session, token_row.user_id)
    refresh_plain = await save_refresh_token(session, token_row.user_id)
    access = create_access_token(claims["user_public_id"], claims["role_ids"],
                                 role_version=claims["role_version"])

    logger.info("auth.refresh.rotated", extra={"user_public_id": str(claims["user_public_id"])})
    return access, refresh_plain


async def revoke_refresh_token(session, plain_token):
    token_row = await get_refresh_token(session, plain_token)
    if token_row and token_row.revoked_at is None:
        token_row.revoked_at = now()
        token_row.revoked_by = "logout"
        return True
    return False


def dispatch_verification_code(channel, user, code):
    text = f"Your verification code is {code}. It expires in {VERIFICATION_CODE_TTL_MINUTES} minutes."
    if channel == VerificationChannel.SMS:
        fire_and_forget(send_sms(user.phone, text), name="verification.sms")
    else:
        fire_and_forget(send_email(user.email, "Verify your email", text), name="verification.email")


async def request_verification(session, user, channel: VerificationChannel):
    if channel == VerificationChannel.SMS and not user.phone:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No phone number on the account")
    if channel == VerificationChannel.EMAIL and user.email_verified_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")
    if channel == VerificationChannel.SMS and user.phone_verified_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone already verified")

    code = generate_otp()
    await save_verification_code(session, user.id, channel, code, VERIFICATION_CODE_TTL_MINUTES)
    logger.info("verification.code.issued", extra={"channel": channel.value})
    return code


async def confirm_verification(session, user, channel: VerificationChannel, code: str):
    row = await latest_verification_code(session, user.id, channel)
    if not row:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No active verification code, request a new one")

    if row.attempts >= VERIFICATION_MAX_ATTEMPTS:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many attempts, request a new code")

    if row.code_hash != hash_token(code):
        row.attempts += 1
        # failed attempts must survive the error response
        await session.commit()
        logger.warning("verification.code.mismatch", extra={"attempts": row.attempts})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification code")

    row.consumed_at = now()
    if channel == VerificationChannel.SMS:
        user.phone_verified_at = now()
    else:
        user.email_verified_at = now()
    logger.info("verification.code.confirmed", extra={"channel": channel.value})
