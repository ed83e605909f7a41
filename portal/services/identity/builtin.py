"""Built-in identity provider: the portal's own HS256 access tokens."""

import logging
from typing import Optional

from jose import JWTError, jwt as jose_jwt
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.core.security import ACCESS_TOKEN_TYPE, decode_token
from portal.services.identity.base import AuthenticatedIdentity, IdentityProvider

logger = logging.getLogger(__name__)


def _portal_user_id(payload: dict) -> Optional[int]:
    """Integer user id from ``sub``, or None for anything else."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


class BuiltinIdentityProvider(IdentityProvider):
    """Tokens minted by ``/api/auth/login`` and ``/api/auth/refresh``."""

    provider_name = "builtin"

    def can_handle(self, token: str) -> bool:
        try:
            header = jose_jwt.get_unverified_header(token)
        except JWTError:
            return False
        return header.get("alg") == settings.ALGORITHM

    async def validate_token(
        self, token: str, db: AsyncSession
    ) -> Optional[AuthenticatedIdentity]:
        try:
            payload = decode_token(token)
        except JWTError as exc:
            logger.debug("Portal token rejected: %s", exc)
            return None

        # refresh tokens only count at /api/auth/refresh
        if payload.get("type") != ACCESS_TOKEN_TYPE:
            return None

        user_id = _portal_user_id(payload)
        if user_id is None:
            return None

        return AuthenticatedIdentity(
            user_id=user_id,
            provider=self.provider_name,
            subject=str(user_id),
            email=payload.get("email", ""),
            groups=[],
            raw_claims=payload,
        )
