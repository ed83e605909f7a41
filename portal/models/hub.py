"""Reporting hub, report group and report models.

The catalogue is a strict three-level tree: hub -> report group -> report.
A report has no direct pointer to its hub; it is always reached through
its group.
"""

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda


class ReportType(str, enum.Enum):
    """How a report is rendered."""

    SSRS = "SSRS"
    POWER_BI = "PowerBI"
    PAGINATED = "Paginated"


class ReportingHub(Base):
    """Top-level container of report groups."""

    __tablename__ = "reporting_hubs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    icon_name = Column(String(50), nullable=True)
    color_class = Column(String(50), nullable=True)
    background_image = Column(String(100), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    report_groups = relationship(
        "ReportGroup", back_populates="hub", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<ReportingHub {self.code}>"


class ReportGroup(Base):
    """Group of reports inside one hub."""

    __tablename__ = "report_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hub_id = Column(
        Integer, ForeignKey("reporting_hubs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    hub = relationship("ReportingHub", back_populates="report_groups")
    reports = relationship("Report", back_populates="report_group", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ReportGroup {self.code} hub={self.hub_id}>"


class Report(Base):
    """A single renderable report.

    ``report_type`` decides which addressing fields are meaningful: SSRS
    reports use ``ssrs_report_path`` (and optionally ``ssrs_report_server``),
    Power BI and paginated reports use the workspace/report ids.
    """

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_group_id = Column(
        Integer, ForeignKey("report_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    report_type = Column(String(20), default=ReportType.SSRS.value, nullable=False)

    powerbi_workspace_id = Column(String(100), nullable=True)
    powerbi_report_id = Column(String(100), nullable=True)
    powerbi_embed_url = Column(String(1000), nullable=True)
    ssrs_report_path = Column(String(500), nullable=True)
    ssrs_report_server = Column(String(200), nullable=True)

    # JSON array of {name, type, required}
    parameters = Column(Text, nullable=True)

    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    report_group = relationship("ReportGroup", back_populates="reports")
    department_tags = relationship(
        "ReportDepartment", back_populates="report", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Report {self.code} type={self.report_type}>"
