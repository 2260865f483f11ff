from datetime import datetime, timedelta, timezone
import hashlib
import secrets
from passlib.context import CryptContext
from jose import jwt, JWTError
from storefront.auth import SPECIALS
from storefront.config.settings import config_settings

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)
REFRESH_TOKEN_BYTES = 48

pwd_context = CryptContext(schemes=[config_settings.PASS_HASH_SCHEME], deprecated="auto")

# (check, what is missing) in the order they are reported
_PASSWORD_RULES = (
    (str.islower, "one lowercase letter"),
    (str.isupper, "one uppercase letter"),
    (str.isdigit, "one digit"),
    (lambda c: c in SPECIALS, "one special character"),
)


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def validate_password(password: str, min_length: int = 8) -> tuple[bool, str]:
    pw = password.strip()
    if len(pw) < min_length:
        return False, f"Password must be at least {min_length} characters long"
    for check, missing in _PASSWORD_RULES:
        if not any(check(c) for c in pw):
            return False, f"Password must include at least {missing}"
    return True, "OK"


def create_access_token(user_public_id, role_ids, role_version: int,
                        expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_public_id),
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=expires_minutes)).timestamp()),
        "jti": secrets.token_hex(16),
        "roles": list(role_ids),
        "role_version": role_version,
    }
    return jwt.encode(claims, config_settings.JWT_SECRET, algorithm=config_settings.JWT_ALGO)


def decode_token(token: str):
    """Claims of a token with a valid signature and expiry, else None."""
    try:
        return jwt.decode(token, config_settings.JWT_SECRET, algorithms=[config_settings.JWT_ALGO])
    except JWTError:
        return None


def make_refresh_plain() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_token(plain: str) -> str:
    """Digest stored for refresh tokens and verification codes."""
    return hashlib.new(config_settings.TOKEN_HASH_ALGO, plain.encode()).hexdigest()


def generate_otp(digits: int = 6) -> str:
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"
