"""Per-user profile and UI preference rows (one of each per user, created lazily)."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda

DEFAULT_THEME_ID = "white"
DEFAULT_TABLE_ROW_SIZE = "md"


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # Key of one of the avatar images the frontend ships
    avatar_id = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    def __repr__(self):
        return f"<UserProfile user={self.user_id} avatar={self.avatar_id!r}>"


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    theme_id = Column(String(50), default=DEFAULT_THEME_ID, nullable=False)
    table_row_size = Column(String(10), default=DEFAULT_TABLE_ROW_SIZE, nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    def __repr__(self):
        return f"<UserPreferences user={self.user_id} theme={self.theme_id!r}>"
