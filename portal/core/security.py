"""Password hashing and the portal's own access/refresh tokens."""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from jose import jwt
from passlib.context import CryptContext

from portal.config import settings
from portal.utils.datetime_utils import utc_now

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """SSO-only accounts carry no hash and never verify."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _encode(claims: dict[str, Any], token_type: str, lifetime: timedelta) -> tuple[str, datetime]:
    issued_at = utc_now()
    expires_at = issued_at + lifetime
    payload = {**claims, "type": token_type, "iat": issued_at, "exp": expires_at}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM), expires_at


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a short-lived access token.

    ``data`` must carry ``sub`` (the user id as a string); ``email`` is
    included by the login flow so request logs can redact it.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token, _ = _encode(data, ACCESS_TOKEN_TYPE, lifetime)
    return token


def create_refresh_token(user_id: str) -> tuple[str, str, datetime]:
    """
    Issue a refresh token for ``user_id``.

    Returns ``(token, jti, expires_at)``. Only ``hash_token_id(jti)`` is
    persisted, so a leaked table cannot be replayed.
    """
    jti = secrets.token_urlsafe(32)
    token, expires_at = _encode(
        {"sub": user_id, "jti": jti},
        REFRESH_TOKEN_TYPE,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return token, jti, expires_at


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry. Raises ``jose.JWTError`` on failure."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def hash_token_id(jti: str) -> str:
    return hashlib.sha256(jti.encode()).hexdigest()
