from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_user_activity
from storefront.auth.dependencies import signup_validation
from storefront.auth.models import RefreshIn, SignIn, SignupIn, VerifyConfirmIn, VerifyRequestIn
from storefront.auth.services import (confirm_verification, create_user, dispatch_verification_code, issue_auth_tokens,
                                      request_verification, revoke_refresh_token, rotate_refresh_token)
from storefront.auth.constants import ACCESS_TOKEN_TTL_SECONDS, logger
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session
from storefront.schema.full_schema import Users, VerificationChannel
from storefront.user.dependencies import current_user_id

auth_router = APIRouter()


def _token_payload(access, refresh):
    return {"access_token": access, "refresh_token": refresh, "token_type": "bearer",
            "expires_in": ACCESS_TOKEN_TTL_SECONDS}


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup_user(payload: SignupIn = Depends(signup_validation), session: AsyncSession = Depends(get_session)):

    logger.info("signup.attempt")

    user = await create_user(session, payload)
    code = await request_verification(session, user, VerificationChannel.EMAIL)
    await session.commit()

    dispatch_verification_code(VerificationChannel.EMAIL, user, code)
    log_user_activity(user.id, "USER_SIGNED_UP")

    logger.info("signup.success", extra={"user_public_id": str(user.public_id)})
    return success_response({"message": "User created successfully.", "user_id": user.public_id}, 201)


@auth_router.post("/login")
async def login_user(payload: SignIn, session: AsyncSession = Depends(get_session)):

    logger.info("login.attempt")

    access, refresh = await issue_auth_tokens(session, payload)
    await session.commit()

    logger.info("login.success")
    return success_response(_token_payload(access, refresh), 200)


@auth_router.post("/refresh")
async def refresh_auth(payload: RefreshIn, session: AsyncSession = Depends(get_session)):

    logger.info("refresh.attempt")

    access, refresh = await rotate_refresh_token(session, payload.refresh_token)
    await session.commit()

    return success_response(_token_payload(access, refresh), 200)


@auth_router.post("/logout")
async def logout(payload: RefreshIn, session: AsyncSession = Depends(get_session)):

    revoked = await revoke_refresh_token(session, payload.refresh_token)
    await session.commit()

    logger.info("logout.success", extra={"revoked": revoked})
    return success_response({"message": "Logged out successfully."}, 200)


async def _load_user(session, request) -> Users:
    user = (await session.execute(select(Users).where(Users.id == current_user_id(request)))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@auth_router.post("/verify/request")
async def verification_request(request: Request, payload: VerifyRequestIn, session: AsyncSession = Depends(get_session)):

    user = await _load_user(session, request)
    channel = VerificationChannel(payload.channel.upper())

    code = await request_verification(session, user, channel)
    await session.commit()

    dispatch_verification_code(channel, user, code)
    return success_response({"message": f"Verification code sent via {payload.channel}"}, 200)


@auth_router.post("/verify/confirm")
async def verification_confirm(request: Request, payload: VerifyConfirmIn, session: AsyncSession = Depends(get_session)):

    user = await _load_user(session, request)
    channel = VerificationChannel(payload.channel.upper())

    await confirm_verification(session, user, channel, payload.code)
    await session.commit()

    log_user_activity(user.id, f"{channel.value}_VERIFIED")
    return success_response({"message": f"{payload.channel} verified"}, 200)
