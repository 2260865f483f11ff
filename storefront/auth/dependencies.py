from email_validator import validate_email, EmailNotValidError
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.auth.models import SignupIn
from storefront.auth.utils import validate_password
from storefront.db.dependencies import get_session
from storefront.schema.full_schema import Permission, RolePermission
from storefront.auth.constants import logger


def normalize_email_address(email: str) -> str:
    """
    Validate and return the normalized, lowercased email.
    Raises ValueError if invalid.
    """
    try:
        v = validate_email(email, check_deliverability=False)
        return v.normalized.lower()
    except EmailNotValidError as e:
        raise ValueError(str(e))


async def signup_validation(payload: SignupIn) -> SignupIn:
    try:
        email = normalize_email_address(payload.email)
    except ValueError as e:
        logger.warning("signup.validation.email_invalid", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid email: {e}")

    is_valid, detail = validate_password(payload.password)
    if not is_valid:
        logger.warning("signup.validation.password_invalid", extra={"reason": detail})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    return payload.model_copy(update={"email": email})


def require_permissions(perm: str):
    async def _checker(request: Request,
                       session: AsyncSession = Depends(get_session),):
        user_roles = set(getattr(request.state, "user_roles", None) or [])
        if not user_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")

        # does any of the caller's roles carry the permission
        stmt = (
            select(RolePermission.id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(Permission.name == perm, RolePermission.role_id.in_(list(user_roles))).limit(1)
        )

        res = (await session.execute(stmt)).scalar_one_or_none()

        if not res:
            logger.warning("permission.denied", extra={"permission": perm,
                                                       "user_public_id": getattr(request.state, "user_public_id", None)})
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")

        return True

    return Depends(_checker)
