"""Password login, refresh-token rotation and the current-user profile.

SSO users never come through here; their Entra tokens are accepted directly
by the identity chain.
"""

import logging
import secrets
from datetime import timedelta
from typing import NoReturn, Optional

from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.core.exceptions import UnauthorizedError
from portal.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token_id,
    verify_password,
)
from portal.crud.user import refresh_token_crud, role_crud, user_crud
from portal.models.user import User
from portal.schemas.auth import (
    CurrentUserResponse,
    TokenResponse,
    UserDepartmentSummary,
    UserResponse,
)
from portal.services.audit_service import LoginMethod, audit_service
from portal.services.permission_service import permission_service
from portal.utils.datetime_utils import utc_now
from portal.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)

# Verified against when the email is unknown so both paths cost one hash check
DUMMY_PASSWORD_HASH = hash_password(secrets.token_urlsafe(32))

INVALID_CREDENTIALS = "Incorrect email or password"


class AuthService:

    async def user_response(self, db: AsyncSession, user: User) -> UserResponse:
        roles = await role_crud.list_role_names(db, user.id)
        return UserResponse(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            display_name=user.display_name,
            company=user.company,
            roles=roles,
            is_admin=any(r.lower() == settings.ADMIN_ROLE_NAME.lower() for r in roles),
        )

    async def _issue_tokens(
        self,
        db: AsyncSession,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        access_token = create_access_token({"sub": str(user.id), "email": user.email})
        refresh_token, jti, expires_at = create_refresh_token(str(user.id))
        await refresh_token_crud.create(
            db,
            user_id=user.id,
            token_hash=hash_token_id(jti),
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=await self.user_response(db, user),
        )

    async def _reject(
        self,
        db: AsyncSession,
        user: Optional[User],
        email: str,
        reason: str,
        message: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> NoReturn:
        """Record a failed attempt, commit pending counter changes and raise."""
        audit_service.log_login(
            db, user, email, LoginMethod.PASSWORD, success=False,
            failure_reason=reason, ip_address=ip_address, user_agent=user_agent,
        )
        await db.commit()
        raise UnauthorizedError(message)

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        """Authenticate with email and password.

        Every failure raises ``UnauthorizedError``. The lockout window opens
        once ``MAX_LOGIN_ATTEMPTS`` consecutive wrong passwords are seen and
        lasts ``ACCOUNT_LOCKOUT_MINUTES``. Each attempt leaves a
        ``LOGIN_SUCCESS`` or ``LOGIN_FAILED`` audit row.
        """
        user = await user_crud.get_by_email(db, email)
        if user is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            logger.warning("Login failed: unknown user %s", redact_email(email))
            await self._reject(
                db, None, email, "Unknown user", INVALID_CREDENTIALS, ip_address, user_agent
            )

        now = utc_now()
        if user.is_locked_out:
            if user.lockout_end is not None and user.lockout_end > now:
                minutes = max(1, int((user.lockout_end - now).total_seconds() // 60))
                logger.warning("Login failed: account locked %s", redact_email(email))
                await self._reject(
                    db,
                    user,
                    email,
                    "Account locked",
                    f"Account is locked due to too many failed login attempts. "
                    f"Try again in {minutes} minutes.",
                    ip_address,
                    user_agent,
                )
            # Lockout window has passed
            user.is_locked_out = False
            user.lockout_end = None
            user.failed_login_attempts = 0

        if not verify_password(password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                user.is_locked_out = True
                user.lockout_end = now + timedelta(minutes=settings.ACCOUNT_LOCKOUT_MINUTES)
                logger.warning(
                    "Account locked for %s minutes: %s",
                    settings.ACCOUNT_LOCKOUT_MINUTES, redact_email(email),
                )
            logger.warning("Login failed: wrong password for %s", redact_email(email))
            await self._reject(
                db, user, email, "Invalid password", INVALID_CREDENTIALS, ip_address, user_agent
            )

        if not user.is_active:
            await self._reject(
                db, user, email, "Account inactive", "User account is inactive",
                ip_address, user_agent,
            )
        if user.is_expired:
            await self._reject(
                db, user, email, "Account expired", "User account has expired",
                ip_address, user_agent,
            )

        audit_service.log_login(
            db, user, email, LoginMethod.PASSWORD, success=True,
            ip_address=ip_address, user_agent=user_agent,
        )
        await user_crud.record_login(db, user)
        logger.info("Login successful: user_id=%s", user.id)
        return await self._issue_tokens(db, user, ip_address, user_agent)

    async def refresh(
        self,
        db: AsyncSession,
        raw_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TokenResponse:
        """Exchange a refresh token for a new token pair, revoking the old one."""
        try:
            payload = decode_token(raw_token)
        except JWTError:
            raise UnauthorizedError("Could not validate token")

        if payload.get("type") != REFRESH_TOKEN_TYPE:
            logger.warning("Token refresh failed: invalid token type")
            raise UnauthorizedError("Invalid token type")

        jti = payload.get("jti")
        if not jti or not payload.get("sub"):
            raise UnauthorizedError("Invalid token")

        token_hash = hash_token_id(jti)
        stored = await refresh_token_crud.get_by_token_hash(db, token_hash)
        if stored is None:
            logger.warning("Token refresh failed: token not found")
            raise UnauthorizedError("Token not found")
        if stored.is_revoked:
            logger.warning("Token refresh failed: token revoked (user_id=%s)", stored.user_id)
            raise UnauthorizedError("Token has been revoked")
        if stored.is_expired:
            raise UnauthorizedError("Token has expired")

        user = await user_crud.get_by_id(db, stored.user_id)
        if user is None or not user.is_active or user.is_expired:
            raise UnauthorizedError("User not found or inactive")

        await refresh_token_crud.revoke(db, token_hash)
        return await self._issue_tokens(db, user, ip_address, user_agent)

    async def logout(self, db: AsyncSession, user: User) -> int:
        revoked = await refresh_token_crud.revoke_all_for_user(db, user.id)
        logger.info("Logout: user_id=%s revoked=%s", user.id, revoked)
        return revoked

    async def current_user(self, db: AsyncSession, user: User) -> CurrentUserResponse:
        base = await self.user_response(db, user)
        departments = await permission_service.list_user_departments(db, user.id)
        return CurrentUserResponse(
            **base.model_dump(),
            departments=[
                UserDepartmentSummary(
                    department_id=d.department_id,
                    department_code=d.department_code,
                    department_name=d.department_name,
                )
                for d in departments
            ],
        )


auth_service = AuthService()
