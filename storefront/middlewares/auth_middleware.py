from typing import Sequence
from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from storefront.common.utils import build_error, json_error
from storefront.user.dependencies import Authentication
from storefront.user.repository import identify_user_by_pid
from storefront.middlewares.constants import logger


class AuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_maker, paths: Sequence[str]):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = tuple(paths)

    async def dispatch(self, request: Request, call_next):

        if request.method == "OPTIONS" or any(request.url.path.startswith(p) for p in self.paths):
            return await call_next(request)

        logger.debug("auth.middleware.attempt", extra={
            "path": request.url.path,
            "method": request.method
        })

        try:
            auth_token = await Authentication()(request)
        except HTTPException as e:
            logger.warning("auth.middleware.failed", extra={
                "reason": e.detail,
                "path": request.url.path,
                "method": request.method
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "Missing or Invalid Auth Headers"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        user_pid = auth_token.get("sub")
        user_roles = auth_token.get("roles") or []
        role_version = auth_token.get("role_version")

        async with self.session_maker() as session:
            user = await identify_user_by_pid(session, user_pid)

        if not user or not user.is_active:
            logger.warning("auth.middleware.user_not_found", extra={
                "user_public_id": user_pid,
                "path": request.url.path
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "User unidentified or inactive"})
            return json_error(payload, status_code=status.HTTP_403_FORBIDDEN)

        if role_version != user.role_version:
            logger.warning("auth.middleware.stale_roles", extra={"user_public_id": user_pid})
            payload = build_error(code="INVALID_AUTH", details={"message": "Roles changed, please sign in again"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        request.state.user_identifier = user.id
        request.state.user_public_id = user_pid
        request.state.user_roles = user_roles
        request.state.role_version = role_version

        return await call_next(request)
