"""SQLAlchemy models package."""

from portal.models.user import User, Role, UserRole, RefreshToken
from portal.models.hub import ReportingHub, ReportGroup, Report, ReportType
from portal.models.department import Department, UserDepartment, ReportDepartment
from portal.models.access import UserHubAccess, UserReportAccess
from portal.models.favorite import UserFavorite
from portal.models.audit import AuditLog
from portal.models.profile import UserPreferences, UserProfile

__all__ = [
    "User",
    "Role",
    "UserRole",
    "RefreshToken",
    "ReportingHub",
    "ReportGroup",
    "Report",
    "ReportType",
    "Department",
    "UserDepartment",
    "ReportDepartment",
    "UserHubAccess",
    "UserReportAccess",
    "UserFavorite",
    "AuditLog",
    "UserProfile",
    "UserPreferences",
]
