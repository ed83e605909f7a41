"""Microsoft Entra ID (Azure AD) identity provider.

Validates RS256 v2.0 access tokens against the tenant's JWKS and maps the
``oid`` claim onto ``users.entra_object_id``. Unknown users are created on
first sign-in when ``ENTRA_AUTO_PROVISION`` is enabled. Membership of
``ENTRA_ADMIN_GROUP`` (a group object id in the ``groups`` claim) is synced
onto the Admin role on every sign-in; the sync only revokes what it granted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from jose import JWTError, jwt as jose_jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.crud.user import role_crud, user_crud
from portal.models.user import ROLE_SOURCE_ENTRA_GROUP, User
from portal.services.audit_service import AuditAction, LoginMethod, audit_service
from portal.services.identity.base import AuthenticatedIdentity, IdentityProvider
from portal.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)

# JWKS cache TTL
_JWKS_TTL = timedelta(hours=1)


@dataclass
class EntraProviderConfig:
    """Configuration for one Entra tenant/application."""

    tenant_id: str
    client_id: str
    admin_group: str = ""
    auto_provision: bool = True

    @property
    def issuer(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}/v2.0"

    @property
    def jwks_uri(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}/discovery/v2.0/keys"

    @property
    def audiences(self) -> list[str]:
        # Tokens minted for a custom scope carry the api:// form of the app id
        return [self.client_id, f"api://{self.client_id}"]


class EntraIdentityProvider(IdentityProvider):
    """Validates Entra-issued RS256 tokens. JWKS keys are cached for an hour."""

    provider_name = "entra"

    def __init__(self, config: EntraProviderConfig) -> None:
        self.config = config
        self._jwks_cache: Optional[dict] = None
        self._jwks_fetched_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # IdentityProvider interface
    # ------------------------------------------------------------------

    def can_handle(self, token: str) -> bool:
        try:
            unverified = jose_jwt.get_unverified_claims(token)
        except JWTError:
            return False
        return unverified.get("iss") == self.config.issuer

    async def validate_token(
        self, token: str, db: AsyncSession
    ) -> Optional[AuthenticatedIdentity]:
        try:
            jwks = await self._get_jwks()
            payload = jose_jwt.decode(
                token,
                jwks,
                algorithms=["RS256"],
                audience=self.config.audiences,
                issuer=self.config.issuer,
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            logger.debug("Entra token validation failed: %s", exc)
            return None
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch Entra JWKS: %s", exc)
            return None

        object_id = payload.get("oid")
        if not object_id:
            return None

        email = payload.get("preferred_username") or payload.get("email") or ""
        raw_groups = payload.get("groups", [])
        groups = [str(g) for g in raw_groups] if isinstance(raw_groups, list) else []

        user = await self._resolve_user(db, object_id, email, payload, groups)
        if user is None:
            return None

        return AuthenticatedIdentity(
            user_id=user.id,
            provider=self.provider_name,
            subject=object_id,
            email=user.email,
            groups=groups,
            raw_claims=payload,
        )

    # ------------------------------------------------------------------
    # JWKS helpers
    # ------------------------------------------------------------------

    async def _get_jwks(self) -> dict:
        now = datetime.now(tz=timezone.utc)
        if (
            self._jwks_cache is not None
            and self._jwks_fetched_at is not None
            and now - self._jwks_fetched_at < _JWKS_TTL
        ):
            return self._jwks_cache

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(self.config.jwks_uri)
            response.raise_for_status()
            self._jwks_cache = response.json()
            self._jwks_fetched_at = now
            return self._jwks_cache

    # ------------------------------------------------------------------
    # User resolution / auto-provisioning
    # ------------------------------------------------------------------

    async def _resolve_user(
        self, db: AsyncSession, object_id: str, email: str, claims: dict, groups: list
    ) -> Optional[User]:
        user = await user_crud.get_by_entra_object_id(db, object_id)

        if user is None and email:
            # Account created by an admin before the first SSO sign-in
            user = await user_crud.get_by_email(db, email)
            if user is not None:
                user.entra_object_id = object_id
                audit_service.log_login(db, user, email, LoginMethod.SSO, success=True)

        if user is None:
            if not self.config.auto_provision:
                logger.warning("Entra user not found and auto-provision is off: oid=%s", object_id)
                return None
            return await self._provision_user(db, object_id, email, claims, groups)

        await self._sync_admin_role(db, user, groups)
        await db.commit()
        return user

    async def _provision_user(
        self, db: AsyncSession, object_id: str, email: str, claims: dict, groups: list
    ) -> Optional[User]:
        """Create an SSO-only user (no password) holding the default role."""
        if not email:
            logger.warning("Entra token without a username claim: oid=%s", object_id)
            return None

        user = User(
            entra_object_id=object_id,
            email=email,
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
            display_name=claims.get("name"),
            is_active=True,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent first sign-in created the row
            await db.rollback()
            return await user_crud.get_by_entra_object_id(db, object_id)

        default_role = await role_crud.get_by_name(db, settings.DEFAULT_ROLE_NAME)
        if default_role is not None:
            role_crud.add_membership(db, user.id, default_role.id, granted_by=None)
        audit_service.log_login(db, user, email, LoginMethod.SSO, success=True)
        await self._sync_admin_role(db, user, groups)
        await db.commit()

        logger.info(
            "Auto-provisioned Entra user: user_id=%s email=%s", user.id, redact_email(email)
        )
        return user

    async def _sync_admin_role(self, db: AsyncSession, user: User, groups: list) -> None:
        """Mirror ``admin_group`` membership onto the Admin role.

        Only rows this sync created (``source == entra_group``) are removed
        when the group is no longer held; a grant made through the admin
        API stays.
        """
        if not self.config.admin_group:
            return

        admin_role = await role_crud.get_by_name(db, settings.ADMIN_ROLE_NAME)
        if admin_role is None:
            return

        membership = await role_crud.find_membership(db, user.id, admin_role.id)
        in_group = self.config.admin_group in groups
        if in_group and membership is None:
            role_crud.add_membership(
                db, user.id, admin_role.id, granted_by=None, source=ROLE_SOURCE_ENTRA_GROUP
            )
            action = AuditAction.ADMIN_ROLE_GRANTED
            logger.info("Entra admin group grants Admin role: user_id=%s", user.id)
        elif (
            not in_group
            and membership is not None
            and membership.source == ROLE_SOURCE_ENTRA_GROUP
        ):
            await db.delete(membership)
            action = AuditAction.ADMIN_ROLE_REVOKED
            logger.info("Entra admin group no longer held, Admin role removed: user_id=%s", user.id)
        else:
            return

        audit_service.log(
            db,
            action,
            entity_type="User",
            entity_id=user.id,
            new_values={"is_admin": in_group, "source": ROLE_SOURCE_ENTRA_GROUP},
        )
