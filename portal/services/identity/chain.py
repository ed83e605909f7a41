"""IdentityProviderChain: tries each provider in priority order."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.core.exceptions import UnauthorizedError
from portal.services.identity.base import AuthenticatedIdentity, IdentityProvider
from portal.services.identity.builtin import BuiltinIdentityProvider
from portal.services.identity.entra import EntraIdentityProvider, EntraProviderConfig

logger = logging.getLogger(__name__)

# Module-level singleton (built lazily on first request)
_chain: Optional["IdentityProviderChain"] = None


class IdentityProviderChain:
    """Ordered list of identity providers.

    The first provider whose ``can_handle()`` claims the token validates it.
    A claimed token that fails validation is rejected outright; it is not
    offered to the remaining providers.
    """

    def __init__(self, providers: list[IdentityProvider]) -> None:
        self._providers = providers

    @property
    def providers(self) -> list[IdentityProvider]:
        return list(self._providers)

    async def authenticate(self, token: str, db: AsyncSession) -> AuthenticatedIdentity:
        """Validate *token* and return the authenticated identity.

        Raises:
            UnauthorizedError: no provider claims the token, or the claiming
                provider rejects it.
        """
        for provider in self._providers:
            if provider.can_handle(token):
                identity = await provider.validate_token(token, db)
                if identity is not None:
                    return identity
                raise UnauthorizedError("Invalid or expired token")

        raise UnauthorizedError("Could not validate credentials")


def build_chain() -> IdentityProviderChain:
    """Construct the provider chain from application settings."""
    providers: list[IdentityProvider] = []

    for name in settings.IDENTITY_PROVIDER_CHAIN:
        name = name.strip().lower()

        if name == "builtin":
            providers.append(BuiltinIdentityProvider())
            logger.info("Identity chain: added builtin provider")

        elif name == "entra":
            if not settings.ENTRA_TENANT_ID or not settings.ENTRA_CLIENT_ID:
                logger.warning(
                    "Identity chain: 'entra' requested but ENTRA_TENANT_ID / "
                    "ENTRA_CLIENT_ID not set, skipping"
                )
                continue
            providers.append(
                EntraIdentityProvider(
                    EntraProviderConfig(
                        tenant_id=settings.ENTRA_TENANT_ID,
                        client_id=settings.ENTRA_CLIENT_ID,
                        admin_group=settings.ENTRA_ADMIN_GROUP,
                        auto_provision=settings.ENTRA_AUTO_PROVISION,
                    )
                )
            )
            logger.info("Identity chain: added Entra provider iss=%s", settings.entra_issuer)

        else:
            logger.warning("Identity chain: unknown provider %r, skipping", name)

    if not providers:
        logger.warning("Identity chain: no valid providers configured, falling back to builtin")
        providers.append(BuiltinIdentityProvider())

    return IdentityProviderChain(providers)


def get_chain() -> IdentityProviderChain:
    """Return the singleton chain, building it on first call."""
    global _chain
    if _chain is None:
        _chain = build_chain()
    return _chain


def reset_chain() -> None:
    """Drop the cached chain so the next call re-reads settings."""
    global _chain
    _chain = None
