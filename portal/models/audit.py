"""Audit log model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda


class AuditLog(Base):
    """Immutable record of an administrative or security-relevant action.

    Rows are never updated or deleted. The acting user's email is
    denormalized so the entry survives user deletion.
    """

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_email = Column(String(255), nullable=True)

    # e.g. 'HUB_ACCESS_GRANTED', 'REPORT_VIEW'
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    __table_args__ = (
        Index("ix_audit_log_user_created", "user_id", "created_at"),
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action!r} {self.entity_type}={self.entity_id}>"
