from fastapi import Request, HTTPException, status
from fastapi.security import HTTPBearer
from storefront.auth.utils import decode_token


class Authentication(HTTPBearer):
    def __init__(self, auto_error=True):
        super().__init__(auto_error=auto_error)

    async def __call__(self, request: Request) -> dict:
        auth_creds = await super().__call__(request)
        token = auth_creds.credentials

        decoded_token = decode_token(token)

        if not decoded_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token provided.")

        return decoded_token


def current_user_id(request: Request) -> int:
    user_identifier = getattr(request.state, "user_identifier", None)
    if user_identifier is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user_identifier
