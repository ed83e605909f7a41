"""Ad-hoc access grants: direct hub access and direct report access."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda


class UserHubAccess(Base):
    """Direct grant of a whole hub to a user.

    A row whose ``expires_at`` is not strictly in the future is treated as
    absent. Re-granting updates the row in place; revoking deletes it.
    """

    __tablename__ = "user_hub_access"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    hub_id = Column(Integer, ForeignKey("reporting_hubs.id", ondelete="CASCADE"), nullable=False)
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Relationships
    hub = relationship("ReportingHub")
    user = relationship("User", foreign_keys=[user_id])
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    __table_args__ = (
        # One grant per (user, hub); concurrent grants collide here
        UniqueConstraint("user_id", "hub_id", name="uq_user_hub_access_user_hub"),
        Index("ix_user_hub_access_hub", "hub_id"),
    )

    def __repr__(self) -> str:
        return f"<UserHubAccess user={self.user_id} hub={self.hub_id} expires={self.expires_at}>"


class UserReportAccess(Base):
    """Direct grant of one report to a user; implies visibility of its hub."""

    __tablename__ = "user_report_access"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Relationships
    report = relationship("Report")
    user = relationship("User", foreign_keys=[user_id])
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    __table_args__ = (
        UniqueConstraint("user_id", "report_id", name="uq_user_report_access_user_report"),
        Index("ix_user_report_access_report", "report_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserReportAccess user={self.user_id} report={self.report_id}"
            f" expires={self.expires_at}>"
        )
