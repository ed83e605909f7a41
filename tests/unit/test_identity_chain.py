"""Tests for the identity provider chain."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from jose import jwt

from portal.config import settings
from portal.core.exceptions import UnauthorizedError
from portal.core.security import create_access_token, create_refresh_token
from portal.services.identity import (
    BuiltinIdentityProvider,
    EntraIdentityProvider,
    EntraProviderConfig,
    IdentityProviderChain,
    build_chain,
)

ENTRA_CONFIG = EntraProviderConfig(tenant_id="tenant-1", client_id="client-1", admin_group="grp-admins")


def _entra_shaped_token(**claims) -> str:
    """HS256 token carrying Entra claims; it can never pass RS256 validation."""
    payload = {"iss": ENTRA_CONFIG.issuer, "aud": ENTRA_CONFIG.client_id, "oid": "oid-1"}
    payload.update(claims)
    return jwt.encode(payload, "not-the-tenant-key", algorithm="HS256")


@pytest.mark.unit
class TestBuiltinProvider:

    @pytest.mark.asyncio
    async def test_accepts_access_token(self):
        token = create_access_token({"sub": "42", "email": "a@example.com"})

        identity = await BuiltinIdentityProvider().validate_token(token, AsyncMock())

        assert identity.user_id == 42
        assert identity.provider == "builtin"
        assert identity.email == "a@example.com"

    @pytest.mark.asyncio
    async def test_rejects_refresh_token(self):
        token, _jti, _exp = create_refresh_token("42")

        assert await BuiltinIdentityProvider().validate_token(token, AsyncMock()) is None

    @pytest.mark.asyncio
    async def test_rejects_expired_token(self):
        token = create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-1))

        assert await BuiltinIdentityProvider().validate_token(token, AsyncMock()) is None

    @pytest.mark.asyncio
    async def test_rejects_non_numeric_subject(self):
        token = create_access_token({"sub": "not-a-number"})

        assert await BuiltinIdentityProvider().validate_token(token, AsyncMock()) is None

    def test_does_not_claim_garbage(self):
        assert BuiltinIdentityProvider().can_handle("not.a.jwt") is False


@pytest.mark.unit
class TestEntraProviderConfig:

    def test_issuer_and_jwks_uri(self):
        assert ENTRA_CONFIG.issuer == "https://login.microsoftonline.com/tenant-1/v2.0"
        assert ENTRA_CONFIG.jwks_uri.endswith("/tenant-1/discovery/v2.0/keys")

    def test_accepts_both_audience_forms(self):
        assert ENTRA_CONFIG.audiences == ["client-1", "api://client-1"]

    def test_claims_only_tokens_from_its_tenant(self):
        provider = EntraIdentityProvider(ENTRA_CONFIG)

        assert provider.can_handle(_entra_shaped_token()) is True
        assert provider.can_handle(create_access_token({"sub": "1"})) is False


@pytest.mark.unit
class TestIdentityProviderChain:

    @pytest.mark.asyncio
    async def test_first_claiming_provider_authenticates(self):
        chain = IdentityProviderChain([BuiltinIdentityProvider()])
        token = create_access_token({"sub": "7"})

        identity = await chain.authenticate(token, AsyncMock())

        assert identity.user_id == 7

    @pytest.mark.asyncio
    async def test_unclaimed_token_is_rejected(self):
        chain = IdentityProviderChain([BuiltinIdentityProvider()])

        with pytest.raises(UnauthorizedError, match="Could not validate credentials"):
            await chain.authenticate("garbage", AsyncMock())

    @pytest.mark.asyncio
    async def test_claimed_but_invalid_token_is_not_passed_on(self):
        entra = EntraIdentityProvider(ENTRA_CONFIG)
        builtin = BuiltinIdentityProvider()
        chain = IdentityProviderChain([entra, builtin])

        with patch.object(entra, "_get_jwks", new=AsyncMock(return_value={"keys": []})):
            with patch.object(builtin, "validate_token", new=AsyncMock()) as builtin_validate:
                with pytest.raises(UnauthorizedError, match="Invalid or expired token"):
                    await chain.authenticate(_entra_shaped_token(), AsyncMock())

        builtin_validate.assert_not_called()


@pytest.mark.unit
class TestBuildChain:

    def test_entra_without_configuration_is_skipped(self):
        with patch.object(settings, "IDENTITY_PROVIDER_CHAIN", ["entra", "builtin"]), \
                patch.object(settings, "ENTRA_TENANT_ID", ""):
            chain = build_chain()

        assert [p.provider_name for p in chain.providers] == ["builtin"]

    def test_configured_entra_comes_first(self):
        with patch.object(settings, "IDENTITY_PROVIDER_CHAIN", ["entra", "builtin"]), \
                patch.object(settings, "ENTRA_TENANT_ID", "tenant-1"), \
                patch.object(settings, "ENTRA_CLIENT_ID", "client-1"):
            chain = build_chain()

        assert [p.provider_name for p in chain.providers] == ["entra", "builtin"]

    def test_unknown_names_fall_back_to_builtin(self):
        with patch.object(settings, "IDENTITY_PROVIDER_CHAIN", ["ldap"]):
            chain = build_chain()

        assert [p.provider_name for p in chain.providers] == ["builtin"]
