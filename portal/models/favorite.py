"""User favorite reports."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda


class UserFavorite(Base):
    __tablename__ = "user_favorites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    # Relationships
    report = relationship("Report")

    __table_args__ = (
        UniqueConstraint("user_id", "report_id", name="uq_user_favorites_user_report"),
    )

    def __repr__(self):
        return f"<UserFavorite user={self.user_id} report={self.report_id}>"
