"""Access resolution against a real (SQLite) schema."""

from datetime import timedelta

import pytest
import pytest_asyncio

from portal.models.access import UserHubAccess, UserReportAccess
from portal.services.permission_service import (
    ACCESS_ADMIN,
    ACCESS_DEPARTMENT,
    ACCESS_DIRECT,
    ACCESS_HUB,
    permission_service,
)
from portal.utils.datetime_utils import utc_now


async def _hub_ids(db, user, now=None) -> list[int]:
    return [hub.id for hub in await permission_service.resolve_accessible_hubs(db, user.id, now)]


@pytest_asyncio.fixture
async def catalogue(make_hub, make_group, make_report):
    """Two active hubs and one inactive hub, each with a group and a report."""
    finance = await make_hub(name="Finance", sort_order=2)
    sales = await make_hub(name="Sales", sort_order=1)
    archive = await make_hub(name="Archive", sort_order=3, is_active=False)

    finance_group = await make_group(finance, name="Monthly")
    sales_group = await make_group(sales, name="Pipeline")
    archive_group = await make_group(archive, name="Old")

    return {
        "finance": finance,
        "sales": sales,
        "archive": archive,
        "finance_group": finance_group,
        "sales_group": sales_group,
        "finance_report": await make_report(finance_group, name="Ledger"),
        "sales_report": await make_report(sales_group, name="Forecast"),
        "archive_report": await make_report(archive_group, name="Legacy"),
    }


@pytest.mark.integration
class TestAdminBypass:

    @pytest.mark.asyncio
    async def test_admin_sees_every_active_hub_without_grants(self, db, admin_user, catalogue):
        hub_ids = await _hub_ids(db, admin_user)

        assert hub_ids == [catalogue["sales"].id, catalogue["finance"].id]

    @pytest.mark.asyncio
    async def test_admin_role_match_is_case_insensitive(self, db, make_user, roles, catalogue):
        roles["admin"].name = "ADMIN"
        await db.commit()
        user = await make_user(admin=True)

        assert await permission_service.is_admin(db, user.id) is True
        assert len(await _hub_ids(db, user)) == 2

    @pytest.mark.asyncio
    async def test_admin_reports_carry_admin_level(self, db, admin_user, catalogue):
        visible = await permission_service.accessible_reports(db, admin_user.id)

        assert {level for _report, level in visible} == {ACCESS_ADMIN}
        assert catalogue["archive_report"].id not in {r.id for r, _ in visible}


@pytest.mark.integration
class TestUnionOfSources:

    @pytest.mark.asyncio
    async def test_user_without_grants_sees_nothing(self, db, regular_user, catalogue):
        assert await _hub_ids(db, regular_user) == []

    @pytest.mark.asyncio
    async def test_unknown_user_sees_nothing(self, db, catalogue):
        assert await permission_service.resolve_accessible_hubs(db, 12345) == []

    @pytest.mark.asyncio
    async def test_direct_hub_grant(self, db, regular_user, catalogue):
        db.add(UserHubAccess(user_id=regular_user.id, hub_id=catalogue["finance"].id))
        await db.commit()

        assert await _hub_ids(db, regular_user) == [catalogue["finance"].id]

    @pytest.mark.asyncio
    async def test_report_grant_implies_its_hub(self, db, regular_user, catalogue):
        db.add(UserReportAccess(user_id=regular_user.id, report_id=catalogue["sales_report"].id))
        await db.commit()

        assert await _hub_ids(db, regular_user) == [catalogue["sales"].id]
        assert await permission_service.can_access_hub(db, regular_user.id, catalogue["sales"].id)

    @pytest.mark.asyncio
    async def test_hub_appears_once_when_several_sources_cover_it(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        finance = catalogue["finance"]
        db.add(UserHubAccess(user_id=regular_user.id, hub_id=finance.id))
        db.add(UserReportAccess(user_id=regular_user.id, report_id=catalogue["finance_report"].id))
        await db.commit()
        department = await make_department("FIN")
        await add_member(regular_user, department)
        await tag_report(catalogue["finance_report"], department)

        assert await _hub_ids(db, regular_user) == [finance.id]

    @pytest.mark.asyncio
    async def test_inactive_hub_never_appears(self, db, regular_user, catalogue):
        db.add(UserHubAccess(user_id=regular_user.id, hub_id=catalogue["archive"].id))
        await db.commit()

        assert await _hub_ids(db, regular_user) == []
        assert not await permission_service.can_access_hub(
            db, regular_user.id, catalogue["archive"].id
        )

    @pytest.mark.asyncio
    async def test_list_and_point_check_agree(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        db.add(UserReportAccess(user_id=regular_user.id, report_id=catalogue["sales_report"].id))
        await db.commit()
        department = await make_department("OPS")
        await add_member(regular_user, department)
        await tag_report(catalogue["archive_report"], department)

        listed = set(await _hub_ids(db, regular_user))
        for hub in (catalogue["finance"], catalogue["sales"], catalogue["archive"]):
            allowed = await permission_service.can_access_hub(db, regular_user.id, hub.id)
            assert allowed == (hub.id in listed)


@pytest.mark.integration
class TestExpiry:

    @pytest.mark.asyncio
    async def test_grant_expiring_exactly_now_is_excluded(self, db, regular_user, catalogue):
        now = utc_now().replace(microsecond=0)
        db.add(UserHubAccess(user_id=regular_user.id, hub_id=catalogue["finance"].id, expires_at=now))
        await db.commit()

        assert await _hub_ids(db, regular_user, now) == []

    @pytest.mark.asyncio
    async def test_grant_expiring_one_second_later_is_included(self, db, regular_user, catalogue):
        now = utc_now().replace(microsecond=0)
        db.add(
            UserHubAccess(
                user_id=regular_user.id,
                hub_id=catalogue["finance"].id,
                expires_at=now + timedelta(seconds=1),
            )
        )
        await db.commit()

        assert await _hub_ids(db, regular_user, now) == [catalogue["finance"].id]

    @pytest.mark.asyncio
    async def test_expired_report_grant_denies_report(self, db, regular_user, catalogue):
        report = catalogue["finance_report"]
        db.add(
            UserReportAccess(
                user_id=regular_user.id,
                report_id=report.id,
                expires_at=utc_now() - timedelta(minutes=5),
            )
        )
        await db.commit()

        assert not await permission_service.can_access_report(db, regular_user.id, report.id)

    @pytest.mark.asyncio
    async def test_expired_department_membership_is_ignored(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        department = await make_department("FIN")
        await add_member(regular_user, department, expires_at=utc_now() - timedelta(days=1))
        await tag_report(catalogue["finance_report"], department)

        assert await _hub_ids(db, regular_user) == []


@pytest.mark.integration
class TestDepartmentTransitivity:

    @pytest.mark.asyncio
    async def test_member_sees_hub_of_tagged_report(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        department = await make_department("FIN")
        await add_member(regular_user, department)
        await tag_report(catalogue["finance_report"], department)

        assert await _hub_ids(db, regular_user) == [catalogue["finance"].id]
        assert await permission_service.can_access_report(
            db, regular_user.id, catalogue["finance_report"].id
        )

    @pytest.mark.asyncio
    async def test_deactivating_group_hides_hub_but_keeps_membership(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        department = await make_department("FIN")
        await add_member(regular_user, department)
        await tag_report(catalogue["finance_report"], department)

        catalogue["finance_group"].is_active = False
        await db.commit()

        assert await _hub_ids(db, regular_user) == []
        memberships = await permission_service.list_user_departments(db, regular_user.id)
        assert [m.department_code for m in memberships] == ["FIN"]

    @pytest.mark.asyncio
    async def test_deactivating_report_hides_it(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        department = await make_department("FIN")
        await add_member(regular_user, department)
        await tag_report(catalogue["finance_report"], department)

        catalogue["finance_report"].is_active = False
        await db.commit()

        assert await _hub_ids(db, regular_user) == []
        assert not await permission_service.can_access_report(
            db, regular_user.id, catalogue["finance_report"].id
        )

    @pytest.mark.asyncio
    async def test_inactive_department_still_grants(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        department = await make_department("FIN")
        await add_member(regular_user, department)
        await tag_report(catalogue["finance_report"], department)

        department.is_active = False
        await db.commit()

        assert await _hub_ids(db, regular_user) == [catalogue["finance"].id]


@pytest.mark.integration
class TestAccessibleReports:

    @pytest.mark.asyncio
    async def test_hub_grant_covers_every_report_in_hub(
        self, db, regular_user, catalogue, make_report
    ):
        second = await make_report(catalogue["finance_group"], name="Budget")
        db.add(UserHubAccess(user_id=regular_user.id, hub_id=catalogue["finance"].id))
        await db.commit()

        visible = await permission_service.accessible_reports(
            db, regular_user.id, hub_id=catalogue["finance"].id
        )

        assert {r.id for r, _ in visible} == {catalogue["finance_report"].id, second.id}
        assert {level for _, level in visible} == {ACCESS_HUB}

    @pytest.mark.asyncio
    async def test_strongest_level_wins(
        self, db, regular_user, catalogue, make_department, add_member, tag_report
    ):
        report = catalogue["sales_report"]
        department = await make_department("SALES")
        await add_member(regular_user, department)
        await tag_report(report, department)

        visible = await permission_service.accessible_reports(db, regular_user.id)
        assert visible == [(report, ACCESS_DEPARTMENT)]

        db.add(UserReportAccess(user_id=regular_user.id, report_id=report.id))
        await db.commit()
        visible = await permission_service.accessible_reports(db, regular_user.id)
        assert visible == [(report, ACCESS_DIRECT)]

        db.add(UserHubAccess(user_id=regular_user.id, hub_id=catalogue["sales"].id))
        await db.commit()
        visible = await permission_service.accessible_reports(db, regular_user.id)
        assert visible == [(report, ACCESS_HUB)]

    @pytest.mark.asyncio
    async def test_report_grant_does_not_open_sibling_reports(
        self, db, regular_user, catalogue, make_report
    ):
        sibling = await make_report(catalogue["finance_group"], name="Budget")
        db.add(UserReportAccess(user_id=regular_user.id, report_id=catalogue["finance_report"].id))
        await db.commit()

        assert not await permission_service.can_access_report(db, regular_user.id, sibling.id)
        visible = await permission_service.accessible_reports(db, regular_user.id)
        assert [r.id for r, _ in visible] == [catalogue["finance_report"].id]
