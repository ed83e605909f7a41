"""Audit trail writer.

Entries are added to the caller's session and committed together with the
mutation they describe, so an audit row exists iff the change was applied.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.audit import AuditLog
from portal.models.user import User
from portal.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class AuditAction:
    HUB_ACCESS_GRANTED = "HUB_ACCESS_GRANTED"
    HUB_ACCESS_REVOKED = "HUB_ACCESS_REVOKED"
    REPORT_ACCESS_GRANTED = "REPORT_ACCESS_GRANTED"
    REPORT_ACCESS_REVOKED = "REPORT_ACCESS_REVOKED"
    DEPARTMENT_ASSIGNED = "DEPARTMENT_ASSIGNED"
    DEPARTMENT_REMOVED = "DEPARTMENT_REMOVED"
    ADMIN_ROLE_GRANTED = "ADMIN_ROLE_GRANTED"
    ADMIN_ROLE_REVOKED = "ADMIN_ROLE_REVOKED"
    USER_UNLOCKED = "USER_UNLOCKED"
    USER_EXPIRED = "USER_EXPIRED"
    USER_RESTORED = "USER_RESTORED"
    REPORT_VIEW = "REPORT_VIEW"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"


class LoginMethod:
    PASSWORD = "Password"
    SSO = "SSO"


class AuditService:
    """Writes ``audit_log`` rows."""

    def log(
        self,
        db: AsyncSession,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        actor: Optional[User] = None,
        actor_id: Optional[int] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Stage an audit entry on *db*; the caller commits."""
        entry = AuditLog(
            user_id=actor.id if actor is not None else actor_id,
            user_email=actor.email if actor is not None else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
            created_at=utc_now(),
        )
        db.add(entry)
        logger.debug(
            "[audit] %s | entity=%s:%s actor=%s",
            action, entity_type, entity_id, entry.user_id,
        )
        return entry

    def log_login(
        self,
        db: AsyncSession,
        user: Optional[User],
        email: Optional[str],
        method: str,
        success: bool,
        failure_reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Stage a sign-in attempt. *user* is None when the email is unknown."""
        entry = self.log(
            db,
            AuditAction.LOGIN_SUCCESS if success else AuditAction.LOGIN_FAILED,
            entity_type="User",
            entity_id=user.id if user is not None else None,
            actor=user,
            new_values={
                "login_method": method,
                "success": success,
                "failure_reason": failure_reason,
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
        if user is None:
            entry.user_email = email[:255] if email else None
        return entry

    async def list_for_entity(
        self, db: AsyncSession, entity_type: str, entity_id: int, limit: int = 50
    ) -> list[AuditLog]:
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


def _jsonable(values: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Datetimes are stored as ISO strings inside the JSON columns."""
    if values is None:
        return None
    return {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in values.items()}


audit_service = AuditService()
