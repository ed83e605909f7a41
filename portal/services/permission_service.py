"""Permission service: who can see which hubs and reports, and grant management.

A non-admin user's access is the union of three sources:

  1. direct hub grants (``user_hub_access``)
  2. direct report grants (``user_report_access``), which also make the
     report's hub visible
  3. department membership (``user_departments``) joined to department tags
     on reports (``report_departments``), same hub implication as (2)

Grants only count while ``expires_at`` is NULL or strictly in the future.
Reports only count while the report and its group are active, and hubs only
appear while active. Users holding the Admin role skip all of this and see
every active hub.

The hub list and the point checks are built from the same query fragments
(``_hub_id_sources`` / ``_report_id_sources``), so a hub that is listed is
always individually accessible and vice versa.

Usage::

    hubs = await permission_service.resolve_accessible_hubs(db, user.id)

    if not await permission_service.can_access_report(db, user.id, report_id):
        raise ForbiddenError()

    await permission_service.grant_hub_access(
        db, user_id=42, hub_id=3, granted_by=admin, expires_at=None,
    )
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, exists, func, select, union, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from portal.crud.access import access_grant_crud, live_grant
from portal.crud.user import role_crud, user_crud
from portal.models.access import UserHubAccess, UserReportAccess
from portal.models.department import Department, ReportDepartment, UserDepartment
from portal.models.hub import Report, ReportGroup, ReportingHub
from portal.models.user import ROLE_SOURCE_ENTRA_GROUP, ROLE_SOURCE_MANUAL, Role, User, UserRole
from portal.schemas.permission import (
    DepartmentMembershipResponse,
    HubPermissionResponse,
    PermissionsResponse,
    ReportPermissionResponse,
    UserDepartmentsResponse,
    UserPermissionsResponse,
)
from portal.services.audit_service import AuditAction, audit_service
from portal.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

# Access levels reported for each visible report, strongest first
ACCESS_ADMIN = "Admin"
ACCESS_HUB = "Hub"
ACCESS_DIRECT = "Direct"
ACCESS_DEPARTMENT = "Department"


# ---------------------------------------------------------------------------
# Query fragments shared by the resolver and the point checks
# ---------------------------------------------------------------------------


def _admin_membership(user_id: int):
    """EXISTS clause: the user holds the admin role (case-insensitive)."""
    return exists().where(
        UserRole.user_id == user_id,
        UserRole.role_id == Role.id,
        func.lower(Role.name) == settings.ADMIN_ROLE_NAME.lower(),
    )


def _report_is_live():
    return and_(Report.is_active.is_(True), ReportGroup.is_active.is_(True))


def _hub_id_sources(user_id: int, now: datetime) -> list:
    """One SELECT of ``hub_id`` per access source."""
    direct = select(UserHubAccess.hub_id.label("hub_id")).where(
        UserHubAccess.user_id == user_id,
        live_grant(UserHubAccess, now),
    )

    via_report = (
        select(ReportGroup.hub_id.label("hub_id"))
        .select_from(UserReportAccess)
        .join(Report, Report.id == UserReportAccess.report_id)
        .join(ReportGroup, ReportGroup.id == Report.report_group_id)
        .where(
            UserReportAccess.user_id == user_id,
            live_grant(UserReportAccess, now),
            _report_is_live(),
        )
    )

    via_department = (
        select(ReportGroup.hub_id.label("hub_id"))
        .select_from(UserDepartment)
        .join(ReportDepartment, ReportDepartment.department_id == UserDepartment.department_id)
        .join(Report, Report.id == ReportDepartment.report_id)
        .join(ReportGroup, ReportGroup.id == Report.report_group_id)
        .where(
            UserDepartment.user_id == user_id,
            live_grant(UserDepartment, now),
            _report_is_live(),
        )
    )

    return [direct, via_report, via_department]


def _report_id_sources(user_id: int, now: datetime) -> dict[str, object]:
    """One SELECT of ``report_id`` per access source, keyed by access level.

    Report and group activity is checked by the caller against the report
    being tested.
    """
    via_hub = (
        select(Report.id.label("report_id"))
        .join(ReportGroup, ReportGroup.id == Report.report_group_id)
        .join(UserHubAccess, UserHubAccess.hub_id == ReportGroup.hub_id)
        .where(UserHubAccess.user_id == user_id, live_grant(UserHubAccess, now))
    )

    direct = select(UserReportAccess.report_id.label("report_id")).where(
        UserReportAccess.user_id == user_id,
        live_grant(UserReportAccess, now),
    )

    via_department = (
        select(ReportDepartment.report_id.label("report_id"))
        .join(UserDepartment, UserDepartment.department_id == ReportDepartment.department_id)
        .where(UserDepartment.user_id == user_id, live_grant(UserDepartment, now))
    )

    return {ACCESS_HUB: via_hub, ACCESS_DIRECT: direct, ACCESS_DEPARTMENT: via_department}


def _granter_email(grant) -> Optional[str]:
    return grant.granted_by_user.email if grant.granted_by_user is not None else None


class PermissionService:
    """Access resolution plus the grant mutation API."""

    # -------------------------------------------------------------------------
    # Role classifier
    # -------------------------------------------------------------------------

    async def is_admin(self, db: AsyncSession, user_id: int) -> bool:
        result = await db.execute(select(_admin_membership(user_id)))
        return bool(result.scalar())

    # -------------------------------------------------------------------------
    # Resolver
    # -------------------------------------------------------------------------

    async def resolve_accessible_hubs(
        self, db: AsyncSession, user_id: int, now: Optional[datetime] = None
    ) -> list[ReportingHub]:
        """Return the active hubs *user_id* may see, by sort_order then name.

        A user without any grants (or an unknown user id) gets an empty list.
        """
        now = now or utc_now()
        stmt = select(ReportingHub).where(ReportingHub.is_active.is_(True))

        if await self.is_admin(db, user_id):
            logger.debug("[permission.resolve] admin bypass | user=%s", user_id)
        else:
            stmt = stmt.where(ReportingHub.id.in_(union(*_hub_id_sources(user_id, now))))

        result = await db.execute(stmt.order_by(ReportingHub.sort_order, ReportingHub.name))
        hubs = list(result.scalars().all())
        logger.debug(
            "[permission.resolve] user=%s hubs=%s", user_id, [h.id for h in hubs]
        )
        return hubs

    # -------------------------------------------------------------------------
    # Point checks
    # -------------------------------------------------------------------------

    async def can_access_hub(
        self, db: AsyncSession, user_id: int, hub_id: int, now: Optional[datetime] = None
    ) -> bool:
        now = now or utc_now()
        stmt = select(ReportingHub.id).where(
            ReportingHub.id == hub_id,
            ReportingHub.is_active.is_(True),
        )
        if not await self.is_admin(db, user_id):
            stmt = stmt.where(ReportingHub.id.in_(union(*_hub_id_sources(user_id, now))))

        allowed = (await db.execute(stmt)).scalar_one_or_none() is not None
        logger.debug(
            "[permission.check] %s | user=%s hub=%s", "ALLOW" if allowed else "DENY", user_id, hub_id
        )
        return allowed

    async def can_access_report(
        self, db: AsyncSession, user_id: int, report_id: int, now: Optional[datetime] = None
    ) -> bool:
        """True iff the report, its group and its hub are active and one of
        the access sources covers it."""
        now = now or utc_now()
        stmt = (
            select(Report.id)
            .join(ReportGroup, ReportGroup.id == Report.report_group_id)
            .join(ReportingHub, ReportingHub.id == ReportGroup.hub_id)
            .where(
                Report.id == report_id,
                _report_is_live(),
                ReportingHub.is_active.is_(True),
            )
        )
        if not await self.is_admin(db, user_id):
            sources = _report_id_sources(user_id, now).values()
            stmt = stmt.where(Report.id.in_(union(*sources)))

        allowed = (await db.execute(stmt)).scalar_one_or_none() is not None
        logger.debug(
            "[permission.check] %s | user=%s report=%s",
            "ALLOW" if allowed else "DENY", user_id, report_id,
        )
        return allowed

    async def accessible_reports(
        self,
        db: AsyncSession,
        user_id: int,
        hub_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[tuple[Report, str]]:
        """Live reports visible to the user, each paired with its access level.

        When several sources cover a report the strongest level wins
        (Admin > Hub > Direct > Department). Ordered by group then report.
        """
        now = now or utc_now()
        stmt = (
            select(Report, ReportGroup)
            .join(ReportGroup, ReportGroup.id == Report.report_group_id)
            .join(ReportingHub, ReportingHub.id == ReportGroup.hub_id)
            .where(_report_is_live(), ReportingHub.is_active.is_(True))
            .order_by(ReportGroup.sort_order, ReportGroup.name, Report.sort_order, Report.name)
        )
        if hub_id is not None:
            stmt = stmt.where(ReportGroup.hub_id == hub_id)

        rows = (await db.execute(stmt)).all()
        if not rows:
            return []

        if await self.is_admin(db, user_id):
            return [(report, ACCESS_ADMIN) for report, _group in rows]

        candidate_ids = [report.id for report, _group in rows]
        covered: dict[str, set[int]] = {}
        for level, source in _report_id_sources(user_id, now).items():
            sub = source.subquery()
            ids = await db.execute(
                select(sub.c.report_id).where(sub.c.report_id.in_(candidate_ids))
            )
            covered[level] = set(ids.scalars().all())

        visible: list[tuple[Report, str]] = []
        for report, _group in rows:
            for level in (ACCESS_HUB, ACCESS_DIRECT, ACCESS_DEPARTMENT):
                if report.id in covered[level]:
                    visible.append((report, level))
                    break
        return visible

    # -------------------------------------------------------------------------
    # Permission summary
    # -------------------------------------------------------------------------

    async def get_user_permissions(
        self, db: AsyncSession, user_id: int, now: Optional[datetime] = None
    ) -> UserPermissionsResponse:
        """Departments plus live hub/report grants for one user."""
        now = now or utc_now()
        user = await user_crud.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        memberships = await access_grant_crud.list_live_memberships(db, user_id, now)
        hub_grants = await access_grant_crud.list_live_hub_grants(db, user_id, now)
        report_grants = await access_grant_crud.list_live_report_grants(db, user_id, now)

        return UserPermissionsResponse(
            user_id=user.id,
            email=user.email,
            is_admin=await self.is_admin(db, user_id),
            departments=[_membership_response(m) for m in memberships],
            permissions=PermissionsResponse(
                hubs=[
                    HubPermissionResponse(
                        permission_id=g.id,
                        hub_id=g.hub_id,
                        hub_name=g.hub.name,
                        granted_at=g.granted_at,
                        granted_by=_granter_email(g),
                        expires_at=g.expires_at,
                    )
                    for g in hub_grants
                ],
                report_groups=[],
                reports=[
                    ReportPermissionResponse(
                        permission_id=g.id,
                        report_id=g.report_id,
                        report_name=g.report.name,
                        group_name=g.report.report_group.name,
                        hub_id=g.report.report_group.hub_id,
                        hub_name=g.report.report_group.hub.name,
                        granted_at=g.granted_at,
                        granted_by=_granter_email(g),
                        expires_at=g.expires_at,
                    )
                    for g in report_grants
                ],
            ),
        )

    async def list_user_departments(
        self, db: AsyncSession, user_id: int, now: Optional[datetime] = None
    ) -> list[DepartmentMembershipResponse]:
        memberships = await access_grant_crud.list_live_memberships(db, user_id, now or utc_now())
        return [_membership_response(m) for m in memberships]

    async def get_user_departments(self, db: AsyncSession, user_id: int) -> UserDepartmentsResponse:
        user = await _require_user(db, user_id)
        return UserDepartmentsResponse(
            user_id=user.id,
            email=user.email,
            departments=await self.list_user_departments(db, user_id),
        )

    # -------------------------------------------------------------------------
    # Grant mutations
    # -------------------------------------------------------------------------

    async def grant_hub_access(
        self,
        db: AsyncSession,
        user_id: int,
        hub_id: int,
        granted_by: User,
        expires_at: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> UserHubAccess:
        """Grant (or re-grant) a hub to a user.

        An existing grant for the pair has its expiry, grant time and
        granter replaced in place; otherwise a row is inserted.

        Raises:
            NotFoundError: user or hub does not exist.
            ValidationError: hub is inactive.
        """
        await _require_user(db, user_id)
        hub = await db.get(ReportingHub, hub_id)
        if hub is None:
            raise NotFoundError(f"Hub {hub_id} not found")
        if not hub.is_active:
            raise ValidationError(f"Hub {hub_id} is inactive")

        actor_id = granted_by.id
        existing = await access_grant_crud.find_hub_grant(db, user_id, hub_id)
        old_values = {"expires_at": existing.expires_at} if existing is not None else None

        now = utc_now()
        await access_grant_crud.upsert_grant(
            db,
            UserHubAccess,
            {"user_id": user_id, "hub_id": hub_id},
            granted_by=actor_id,
            expires_at=expires_at,
            now=now,
        )
        audit_service.log(
            db,
            AuditAction.HUB_ACCESS_GRANTED,
            entity_type="User",
            entity_id=user_id,
            actor=granted_by,
            old_values=old_values,
            new_values={"hub_id": hub_id, "expires_at": expires_at},
            ip_address=ip_address,
        )
        await db.commit()

        grant = await _reload(db, UserHubAccess, user_id=user_id, hub_id=hub_id)
        logger.info(
            "Hub access granted | user=%s hub=%s expires_at=%s by=%s (%s)",
            user_id, hub_id, expires_at, actor_id, "updated" if existing else "created",
        )
        return grant

    async def grant_report_access(
        self,
        db: AsyncSession,
        user_id: int,
        report_id: int,
        granted_by: User,
        expires_at: Optional[datetime] = None,
        ip_address: Optional[str] = None,
    ) -> UserReportAccess:
        """Grant (or re-grant) a single report to a user. Same upsert rules as hubs."""
        await _require_user(db, user_id)
        report = await db.get(Report, report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        if not report.is_active:
            raise ValidationError(f"Report {report_id} is inactive")

        actor_id = granted_by.id
        existing = await access_grant_crud.find_report_grant(db, user_id, report_id)
        old_values = {"expires_at": existing.expires_at} if existing is not None else None

        await access_grant_crud.upsert_grant(
            db,
            UserReportAccess,
            {"user_id": user_id, "report_id": report_id},
            granted_by=actor_id,
            expires_at=expires_at,
            now=utc_now(),
        )
        audit_service.log(
            db,
            AuditAction.REPORT_ACCESS_GRANTED,
            entity_type="User",
            entity_id=user_id,
            actor=granted_by,
            old_values=old_values,
            new_values={"report_id": report_id, "expires_at": expires_at},
            ip_address=ip_address,
        )
        await db.commit()

        logger.info(
            "Report access granted | user=%s report=%s expires_at=%s by=%s",
            user_id, report_id, expires_at, actor_id,
        )
        return await _reload(db, UserReportAccess, user_id=user_id, report_id=report_id)

    async def revoke_hub_access(
        self,
        db: AsyncSession,
        user_id: int,
        hub_id: int,
        revoked_by: Optional[User] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Delete the (user, hub) grant. Revoking an absent grant is a no-op.

        Returns True when a row was removed.
        """
        removed = await access_grant_crud.delete_hub_grant(db, user_id, hub_id)
        if removed:
            audit_service.log(
                db,
                AuditAction.HUB_ACCESS_REVOKED,
                entity_type="User",
                entity_id=user_id,
                actor=revoked_by,
                old_values={"hub_id": hub_id},
                ip_address=ip_address,
            )
        await db.commit()
        logger.info("Hub access revoked | user=%s hub=%s removed=%s", user_id, hub_id, removed)
        return bool(removed)

    async def revoke_report_access(
        self,
        db: AsyncSession,
        user_id: int,
        report_id: int,
        revoked_by: Optional[User] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Delete the (user, report) grant. Revoking an absent grant is a no-op."""
        removed = await access_grant_crud.delete_report_grant(db, user_id, report_id)
        if removed:
            audit_service.log(
                db,
                AuditAction.REPORT_ACCESS_REVOKED,
                entity_type="User",
                entity_id=user_id,
                actor=revoked_by,
                old_values={"report_id": report_id},
                ip_address=ip_address,
            )
        await db.commit()
        logger.info(
            "Report access revoked | user=%s report=%s removed=%s", user_id, report_id, removed
        )
        return bool(removed)

    async def assign_user_to_department(
        self,
        db: AsyncSession,
        user_id: int,
        department_id: int,
        granted_by: User,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Add a department membership; no-op if the user is already a live member.

        A membership that has expired is taken over: it gets the new grantor
        and no expiry. Returns True when a membership row was written.

        Raises:
            NotFoundError: user or department does not exist.
            ValidationError: department is inactive.
        """
        await _require_user(db, user_id)
        department = await db.get(Department, department_id)
        if department is None:
            raise NotFoundError(f"Department {department_id} not found")
        if not department.is_active:
            raise ValidationError(f"Department {department_id} is inactive")

        now = utc_now()
        inserted = await access_grant_crud.insert_or_revive(
            db,
            UserDepartment,
            {
                "user_id": user_id,
                "department_id": department_id,
                "granted_by": granted_by.id,
                "granted_at": now,
            },
            key=["user_id", "department_id"],
            now=now,
        )
        if inserted:
            audit_service.log(
                db,
                AuditAction.DEPARTMENT_ASSIGNED,
                entity_type="User",
                entity_id=user_id,
                actor=granted_by,
                new_values={"department_id": department_id},
                ip_address=ip_address,
            )
        await db.commit()
        logger.info(
            "Department assignment | user=%s department=%s inserted=%s",
            user_id, department_id, bool(inserted),
        )
        return bool(inserted)

    async def remove_user_from_department(
        self,
        db: AsyncSession,
        user_id: int,
        department_id: int,
        removed_by: Optional[User] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Delete a department membership; no-op if absent."""
        removed = await access_grant_crud.delete_department_membership(db, user_id, department_id)
        if removed:
            audit_service.log(
                db,
                AuditAction.DEPARTMENT_REMOVED,
                entity_type="User",
                entity_id=user_id,
                actor=removed_by,
                old_values={"department_id": department_id},
                ip_address=ip_address,
            )
        await db.commit()
        return bool(removed)

    async def update_user_admin_role(
        self,
        db: AsyncSession,
        user_id: int,
        is_admin: bool,
        granted_by: User,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Add or remove the Admin role; idempotent in both directions.

        Returns True when membership changed.

        Raises:
            ConfigurationError: the Admin role row is missing from ``roles``.
            NotFoundError: user does not exist.
        """
        admin_role = await role_crud.get_by_name(db, settings.ADMIN_ROLE_NAME)
        if admin_role is None:
            raise ConfigurationError("Admin role not found in database")
        await _require_user(db, user_id)

        if is_admin:
            changed = await access_grant_crud.insert_if_absent(
                db,
                UserRole,
                {
                    "user_id": user_id,
                    "role_id": admin_role.id,
                    "granted_by": granted_by.id,
                    "granted_at": utc_now(),
                    "source": ROLE_SOURCE_MANUAL,
                },
                key=["user_id", "role_id"],
            )
            if not changed:
                # A group-synced grant becomes a manual one and survives leaving the group
                await db.execute(
                    update(UserRole)
                    .where(
                        UserRole.user_id == user_id,
                        UserRole.role_id == admin_role.id,
                        UserRole.source == ROLE_SOURCE_ENTRA_GROUP,
                    )
                    .values(source=ROLE_SOURCE_MANUAL, granted_by=granted_by.id)
                )
            action = AuditAction.ADMIN_ROLE_GRANTED
        else:
            membership = await role_crud.find_membership(db, user_id, admin_role.id)
            changed = 0
            if membership is not None:
                await db.delete(membership)
                changed = 1
            action = AuditAction.ADMIN_ROLE_REVOKED

        if changed:
            audit_service.log(
                db,
                action,
                entity_type="User",
                entity_id=user_id,
                actor=granted_by,
                new_values={"is_admin": is_admin},
                ip_address=ip_address,
            )
        await db.commit()
        logger.info(
            "Admin role update | user=%s is_admin=%s changed=%s", user_id, is_admin, bool(changed)
        )
        return bool(changed)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


async def _require_user(db: AsyncSession, user_id: int) -> User:
    user = await user_crud.get_by_id(db, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def _reload(db: AsyncSession, model, **key):
    """Fetch a grant row after a core-level upsert, bypassing stale identity-map state."""
    result = await db.execute(
        select(model).filter_by(**key).execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _membership_response(membership: UserDepartment) -> DepartmentMembershipResponse:
    return DepartmentMembershipResponse(
        user_department_id=membership.id,
        department_id=membership.department_id,
        department_code=membership.department.code,
        department_name=membership.department.name,
        granted_at=membership.granted_at,
        granted_by=_granter_email(membership),
        expires_at=membership.expires_at,
    )


permission_service = PermissionService()
