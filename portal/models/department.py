"""Department models: the department itself, user membership, report tags."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda


class Department(Base):
    """Named grouping of users, independent of the hub/report tree."""

    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    def __repr__(self):
        return f"<Department {self.code}>"


class UserDepartment(Base):
    """Department membership grant.

    Same shape as the hub and report grants, so membership can be
    time-bounded too.
    """

    __tablename__ = "user_departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    department_id = Column(
        Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Relationships
    department = relationship("Department")
    user = relationship("User", foreign_keys=[user_id])
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    __table_args__ = (
        UniqueConstraint("user_id", "department_id", name="uq_user_departments_user_dept"),
        Index("ix_user_departments_department", "department_id"),
    )

    def __repr__(self):
        return f"<UserDepartment user={self.user_id} dept={self.department_id}>"


class ReportDepartment(Base):
    """Tag linking a report to a department.

    Members of the department can see the report (and therefore its hub).
    """

    __tablename__ = "report_departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    department_id = Column(
        Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    # Relationships
    report = relationship("Report", back_populates="department_tags")
    department = relationship("Department")
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    __table_args__ = (
        UniqueConstraint("report_id", "department_id", name="uq_report_departments_report_dept"),
        Index("ix_report_departments_department", "department_id"),
    )

    def __repr__(self):
        return f"<ReportDepartment report={self.report_id} dept={self.department_id}>"
