"""Password login, token rotation, user administration, favorites, profiles and SSO linking."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from portal.config import settings
from portal.core.exceptions import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from portal.core.security import decode_token, hash_token_id
from portal.models.access import UserHubAccess, UserReportAccess
from portal.models.audit import AuditLog
from portal.models.favorite import UserFavorite
from portal.models.profile import UserProfile
from portal.models.user import RefreshToken, Role, UserRole
from portal.schemas.user_profile import UpdatePreferencesRequest
from portal.services.auth_service import INVALID_CREDENTIALS, auth_service
from portal.services.favorite_service import favorite_service
from portal.services.identity.entra import EntraIdentityProvider, EntraProviderConfig
from portal.services.permission_service import permission_service
from portal.services.user_admin_service import user_admin_service
from portal.services.user_service import user_service
from portal.utils.datetime_utils import utc_now


@pytest.mark.integration
class TestLogin:

    @pytest.mark.asyncio
    async def test_login_issues_tokens_and_counts_login(self, db, regular_user, password):
        tokens = await auth_service.login(db, "Viewer@Example.com", password)

        assert decode_token(tokens.access_token)["sub"] == str(regular_user.id)
        assert tokens.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert tokens.user.is_admin is False
        assert regular_user.login_count == 1
        assert regular_user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, db, regular_user):
        with pytest.raises(UnauthorizedError) as wrong:
            await auth_service.login(db, regular_user.email, "nope")
        with pytest.raises(UnauthorizedError) as unknown:
            await auth_service.login(db, "ghost@example.com", "nope")

        assert wrong.value.message == unknown.value.message == INVALID_CREDENTIALS
        assert regular_user.failed_login_attempts == 1

    @pytest.mark.asyncio
    async def test_every_attempt_is_audited(self, db, regular_user, password):
        with pytest.raises(UnauthorizedError):
            await auth_service.login(db, "ghost@example.com", "nope", ip_address="10.1.1.1")
        with pytest.raises(UnauthorizedError):
            await auth_service.login(db, regular_user.email, "nope")
        await auth_service.login(db, regular_user.email, password, user_agent="pytest")

        entries = (await db.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
        assert [(e.action, e.entity_id) for e in entries] == [
            ("LOGIN_FAILED", None),
            ("LOGIN_FAILED", regular_user.id),
            ("LOGIN_SUCCESS", regular_user.id),
        ]
        assert entries[0].user_email == "ghost@example.com"
        assert entries[0].ip_address == "10.1.1.1"
        assert entries[1].new_values == {
            "login_method": "Password",
            "success": False,
            "failure_reason": "Invalid password",
        }
        assert entries[2].user_agent == "pytest"

    @pytest.mark.asyncio
    async def test_lockout_after_max_attempts(self, db, regular_user, password):
        for _ in range(settings.MAX_LOGIN_ATTEMPTS):
            with pytest.raises(UnauthorizedError):
                await auth_service.login(db, regular_user.email, "wrong")

        assert regular_user.is_locked_out is True

        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_service.login(db, regular_user.email, password)
        assert "locked" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_elapsed_lockout_is_cleared(self, db, regular_user, password):
        regular_user.is_locked_out = True
        regular_user.failed_login_attempts = settings.MAX_LOGIN_ATTEMPTS
        regular_user.lockout_end = utc_now() - timedelta(minutes=1)
        await db.commit()

        await auth_service.login(db, regular_user.email, password)

        assert regular_user.is_locked_out is False
        assert regular_user.failed_login_attempts == 0

    @pytest.mark.asyncio
    async def test_expired_account_cannot_log_in(self, db, make_user, password):
        user = await make_user(is_expired=True)

        with pytest.raises(UnauthorizedError):
            await auth_service.login(db, user.email, password)

    @pytest.mark.asyncio
    async def test_sso_only_account_has_no_password(self, db, make_user):
        user = await make_user(password=None, entra_object_id="oid-1")

        with pytest.raises(UnauthorizedError):
            await auth_service.login(db, user.email, "")


@pytest.mark.integration
class TestRefreshTokens:

    @pytest.mark.asyncio
    async def test_refresh_rotates_and_revokes_old_token(self, db, regular_user, password):
        first = await auth_service.login(db, regular_user.email, password)

        second = await auth_service.refresh(db, first.refresh_token)

        assert second.refresh_token != first.refresh_token
        old = await db.execute(
            select(RefreshToken).where(
                RefreshToken.token_hash == hash_token_id(decode_token(first.refresh_token)["jti"])
            )
        )
        assert old.scalar_one().is_revoked

        with pytest.raises(UnauthorizedError):
            await auth_service.refresh(db, first.refresh_token)

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, db, regular_user, password):
        tokens = await auth_service.login(db, regular_user.email, password)

        with pytest.raises(UnauthorizedError):
            await auth_service.refresh(db, tokens.access_token)

    @pytest.mark.asyncio
    async def test_garbage_refresh_token(self, db):
        with pytest.raises(UnauthorizedError):
            await auth_service.refresh(db, "not-a-jwt")

    @pytest.mark.asyncio
    async def test_logout_revokes_every_refresh_token(self, db, regular_user, password):
        first = await auth_service.login(db, regular_user.email, password)
        await auth_service.login(db, regular_user.email, password)

        assert await auth_service.logout(db, regular_user) == 2

        with pytest.raises(UnauthorizedError):
            await auth_service.refresh(db, first.refresh_token)


@pytest.mark.integration
class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_profile_carries_roles_and_departments(
        self, db, admin_user, make_department, add_member
    ):
        await add_member(admin_user, await make_department("FIN"))

        profile = await auth_service.current_user(db, admin_user)

        assert profile.is_admin is True
        assert sorted(profile.roles) == sorted([settings.ADMIN_ROLE_NAME, settings.DEFAULT_ROLE_NAME])
        assert [d.department_code for d in profile.departments] == ["FIN"]


@pytest.mark.integration
class TestUserAdministration:

    @pytest.mark.asyncio
    async def test_cannot_expire_self(self, db, admin_user):
        with pytest.raises(ValidationError):
            await user_admin_service.expire_user(db, admin_user.id, admin_user)

    @pytest.mark.asyncio
    async def test_expire_and_restore(self, db, admin_user, regular_user):
        await user_admin_service.expire_user(db, regular_user.id, admin_user, reason="Left company")

        listed = await user_admin_service.list_users(db)
        assert [u.email for u in listed.users] == [admin_user.email]
        expired = await user_admin_service.get_user(db, regular_user.id)
        assert expired.is_expired is True
        assert expired.expiration_reason == "Left company"

        await user_admin_service.restore_user(db, regular_user.id, admin_user)

        restored = await user_admin_service.get_user(db, regular_user.id)
        assert restored.is_expired is False
        assert restored.expired_at is None

        audit = await user_admin_service.list_audit(db, regular_user.id)
        assert [e.action for e in audit.entries] == ["USER_RESTORED", "USER_EXPIRED"]

    @pytest.mark.asyncio
    async def test_unlock_resets_counters(self, db, admin_user, regular_user, password):
        regular_user.is_locked_out = True
        regular_user.failed_login_attempts = 9
        regular_user.lockout_end = utc_now() + timedelta(minutes=20)
        await db.commit()

        await user_admin_service.unlock_user(db, regular_user.id, admin_user)

        user = await user_admin_service.get_user(db, regular_user.id)
        assert user.is_locked_out is False
        await auth_service.login(db, regular_user.email, password)

    @pytest.mark.asyncio
    async def test_list_search_and_paging(self, db, admin_user, make_user, make_hub):
        await make_user(email="ann@example.com", first_name="Ann")
        bob = await make_user(email="bob@example.com", first_name="Bob")
        hub = await make_hub()
        db.add(UserHubAccess(user_id=bob.id, hub_id=hub.id))
        await db.commit()

        found = await user_admin_service.list_users(db, search="BOB")
        assert [(u.email, u.hub_count) for u in found.users] == [("bob@example.com", 1)]

        page = await user_admin_service.list_users(db, page=2, page_size=2)
        assert page.pagination.total_count == 3
        assert page.pagination.total_pages == 2
        assert [u.email for u in page.users] == ["bob@example.com"]

    @pytest.mark.asyncio
    async def test_audit_for_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            await user_admin_service.list_audit(db, 31337)


@pytest.mark.integration
class TestFavorites:

    @pytest.mark.asyncio
    async def test_add_is_idempotent_and_appends(
        self, db, admin_user, make_hub, make_group, make_report
    ):
        group = await make_group(await make_hub())
        first = await make_report(group, name="Ledger")
        second = await make_report(group, name="Budget")

        assert await favorite_service.add_favorite(db, admin_user, first.id)
        assert await favorite_service.add_favorite(db, admin_user, second.id)
        assert not await favorite_service.add_favorite(db, admin_user, first.id)

        listing = await favorite_service.list_favorites(db, admin_user)
        assert [(f.report_name, f.sort_order) for f in listing.favorites] == [
            ("Ledger", 1),
            ("Budget", 2),
        ]

    @pytest.mark.asyncio
    async def test_add_over_existing_row_keeps_one(
        self, db, admin_user, make_hub, make_group, make_report
    ):
        report = await make_report(await make_group(await make_hub()))
        db.add(UserFavorite(user_id=admin_user.id, report_id=report.id, sort_order=7))
        await db.commit()

        assert not await favorite_service.add_favorite(db, admin_user, report.id)

        stored = await db.execute(
            select(UserFavorite.sort_order).where(UserFavorite.user_id == admin_user.id)
        )
        assert stored.scalars().all() == [7]

    @pytest.mark.asyncio
    async def test_reorder(self, db, admin_user, make_hub, make_group, make_report):
        group = await make_group(await make_hub())
        first = await make_report(group, name="Ledger")
        second = await make_report(group, name="Budget")
        await favorite_service.add_favorite(db, admin_user, first.id)
        await favorite_service.add_favorite(db, admin_user, second.id)

        await favorite_service.reorder_favorites(db, admin_user, [second.id, first.id])

        listing = await favorite_service.list_favorites(db, admin_user)
        assert [f.report_id for f in listing.favorites] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_inaccessible_report_cannot_be_favorited(
        self, db, regular_user, make_hub, make_group, make_report
    ):
        report = await make_report(await make_group(await make_hub()))

        with pytest.raises(ForbiddenError):
            await favorite_service.add_favorite(db, regular_user, report.id)
        with pytest.raises(NotFoundError):
            await favorite_service.add_favorite(db, regular_user, 5050)

    @pytest.mark.asyncio
    async def test_revoked_access_hides_but_keeps_favorite(
        self, db, admin_user, regular_user, make_hub, make_group, make_report
    ):
        report = await make_report(await make_group(await make_hub()))
        db.add(UserReportAccess(user_id=regular_user.id, report_id=report.id))
        await db.commit()
        await favorite_service.add_favorite(db, regular_user, report.id)

        await permission_service.revoke_report_access(db, regular_user.id, report.id, admin_user)

        assert (await favorite_service.list_favorites(db, regular_user)).favorites == []
        stored = await db.execute(select(UserFavorite).where(UserFavorite.user_id == regular_user.id))
        assert stored.scalar_one().report_id == report.id

    @pytest.mark.asyncio
    async def test_remove(self, db, admin_user, make_hub, make_group, make_report):
        report = await make_report(await make_group(await make_hub()))
        await favorite_service.add_favorite(db, admin_user, report.id)

        assert await favorite_service.remove_favorite(db, admin_user, report.id)
        assert not await favorite_service.remove_favorite(db, admin_user, report.id)


def _entra(**overrides) -> EntraIdentityProvider:
    config = EntraProviderConfig(tenant_id="tenant-1", client_id="client-1", **overrides)
    return EntraIdentityProvider(config)


@pytest.mark.integration
class TestProfileAndPreferences:

    @pytest.mark.asyncio
    async def test_defaults_without_saved_rows(self, db, regular_user):
        profile = await user_service.get_profile(db, regular_user)
        preferences = await user_service.get_preferences(db, regular_user)

        assert profile.avatar_id is None
        assert (preferences.theme_id, preferences.table_row_size) == ("white", "md")

    @pytest.mark.asyncio
    async def test_avatar_is_replaced_in_place(self, db, regular_user):
        await user_service.update_avatar(db, regular_user, "fox")
        result = await user_service.update_avatar(db, regular_user, "owl")

        assert result.avatar_id == "owl"
        assert (await user_service.get_profile(db, regular_user)).avatar_id == "owl"
        rows = (
            await db.execute(select(UserProfile).where(UserProfile.user_id == regular_user.id))
        ).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_field(self, db, regular_user):
        await user_service.update_preferences(
            db, regular_user, UpdatePreferencesRequest(theme_id="g100", table_row_size="sm")
        )

        result = await user_service.update_preferences(
            db, regular_user, UpdatePreferencesRequest(theme_id="g10")
        )

        assert (result.preferences.theme_id, result.preferences.table_row_size) == ("g10", "sm")


@pytest.mark.integration
class TestEntraUserResolution:

    @pytest.mark.asyncio
    async def test_first_sign_in_provisions_user(self, db, roles):
        claims = {"given_name": "Sam", "family_name": "Lee", "name": "Sam Lee"}

        user = await _entra()._resolve_user(db, "oid-42", "sam@example.com", claims, [])

        assert user.entra_object_id == "oid-42"
        assert user.password_hash is None
        assert user.display_name == "Sam Lee"
        assert not await permission_service.is_admin(db, user.id)

    @pytest.mark.asyncio
    async def test_existing_account_is_linked_by_email(self, db, regular_user):
        user = await _entra()._resolve_user(db, "oid-7", "VIEWER@example.com", {}, [])

        assert user.id == regular_user.id
        assert regular_user.entra_object_id == "oid-7"

    @pytest.mark.asyncio
    async def test_auto_provision_off(self, db, roles):
        provider = _entra(auto_provision=False)

        assert await provider._resolve_user(db, "oid-9", "new@example.com", {}, []) is None

    @pytest.mark.asyncio
    async def test_admin_group_membership_is_synced(self, db, regular_user):
        provider = _entra(admin_group="grp-admins")

        await provider._resolve_user(db, "oid-3", regular_user.email, {}, ["grp-admins"])
        assert await permission_service.is_admin(db, regular_user.id)

        await provider._resolve_user(db, "oid-3", regular_user.email, {}, [])
        assert not await permission_service.is_admin(db, regular_user.id)

    @pytest.mark.asyncio
    async def test_group_sync_is_audited(self, db, regular_user):
        provider = _entra(admin_group="grp-admins")
        regular_user.entra_object_id = "oid-3"
        await db.commit()

        await provider._resolve_user(db, "oid-3", regular_user.email, {}, ["grp-admins"])
        await provider._resolve_user(db, "oid-3", regular_user.email, {}, ["grp-admins"])
        await provider._resolve_user(db, "oid-3", regular_user.email, {}, [])

        rows = await db.execute(
            select(AuditLog.action, AuditLog.new_values)
            .where(AuditLog.action.like("ADMIN_ROLE_%"))
            .order_by(AuditLog.id)
        )
        assert [tuple(r) for r in rows] == [
            ("ADMIN_ROLE_GRANTED", {"is_admin": True, "source": "entra_group"}),
            ("ADMIN_ROLE_REVOKED", {"is_admin": False, "source": "entra_group"}),
        ]

    @pytest.mark.asyncio
    async def test_api_granted_admin_survives_group_sync(self, db, admin_user, regular_user):
        provider = _entra(admin_group="grp-admins")
        await permission_service.update_user_admin_role(db, regular_user.id, True, admin_user)

        await provider._resolve_user(db, "oid-5", regular_user.email, {}, [])
        await provider._resolve_user(db, "oid-5", regular_user.email, {}, [])

        assert await permission_service.is_admin(db, regular_user.id)
        revoked = await db.execute(
            select(AuditLog.id).where(AuditLog.action == "ADMIN_ROLE_REVOKED")
        )
        assert revoked.scalars().all() == []

    @pytest.mark.asyncio
    async def test_api_grant_takes_over_group_grant(self, db, admin_user, regular_user):
        provider = _entra(admin_group="grp-admins")
        await provider._resolve_user(db, "oid-6", regular_user.email, {}, ["grp-admins"])

        await permission_service.update_user_admin_role(db, regular_user.id, True, admin_user)
        await provider._resolve_user(db, "oid-6", regular_user.email, {}, [])

        assert await permission_service.is_admin(db, regular_user.id)
        source = await db.execute(
            select(UserRole.source)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id == regular_user.id, Role.name == settings.ADMIN_ROLE_NAME)
        )
        assert source.scalar_one() == "manual"

    @pytest.mark.asyncio
    async def test_account_link_records_sso_sign_in(self, db, regular_user):
        await _entra()._resolve_user(db, "oid-8", regular_user.email, {}, [])

        entry = (
            await db.execute(select(AuditLog).where(AuditLog.action == "LOGIN_SUCCESS"))
        ).scalar_one()
        assert entry.entity_id == regular_user.id
        assert entry.new_values["login_method"] == "SSO"
