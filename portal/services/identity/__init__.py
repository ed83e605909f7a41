"""Identity providers: the authentication abstraction layer."""

from portal.services.identity.base import AuthenticatedIdentity, IdentityProvider
from portal.services.identity.builtin import BuiltinIdentityProvider
from portal.services.identity.chain import (
    IdentityProviderChain,
    build_chain,
    get_chain,
    reset_chain,
)
from portal.services.identity.entra import EntraIdentityProvider, EntraProviderConfig

__all__ = [
    "AuthenticatedIdentity",
    "IdentityProvider",
    "BuiltinIdentityProvider",
    "EntraIdentityProvider",
    "EntraProviderConfig",
    "IdentityProviderChain",
    "build_chain",
    "get_chain",
    "reset_chain",
]
