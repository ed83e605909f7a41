"""User, role and refresh token models."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from portal.core.database import Base
from portal.utils.datetime_utils import utc_now_lambda, utc_now


class User(Base):
    """Portal user.

    SSO users are matched on ``entra_object_id`` (the Entra ``oid`` claim);
    password users carry a ``password_hash``. A user may have both.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entra_object_id = Column(String(100), unique=True, nullable=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    display_name = Column(String(200))
    company = Column(String(200))

    is_active = Column(Boolean, default=True, nullable=False)

    # Expiration (an admin action, distinct from deactivation)
    is_expired = Column(Boolean, default=False, nullable=False)
    expired_at = Column(DateTime, nullable=True)
    expiration_reason = Column(String(500), nullable=True)
    expired_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Lockout after repeated failed password logins
    is_locked_out = Column(Boolean, default=False, nullable=False)
    lockout_end = Column(DateTime, nullable=True)
    failed_login_attempts = Column(Integer, default=0, nullable=False)

    last_login_at = Column(DateTime, nullable=True)
    login_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    user_roles = relationship(
        "UserRole",
        back_populates="user",
        foreign_keys="UserRole.user_id",
        cascade="all, delete-orphan",
    )
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        parts = [p for p in [self.first_name, self.last_name] if p]
        return " ".join(parts) if parts else self.email

    @property
    def is_currently_locked(self) -> bool:
        """True while a lockout window is still open."""
        if not self.is_locked_out:
            return False
        return self.lockout_end is None or self.lockout_end > utc_now()

    def __repr__(self):
        return f"<User {self.email}>"


class Role(Base):
    """Named role. ``Admin`` bypasses every grant check."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(255), nullable=True)
    is_system_role = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    def __repr__(self):
        return f"<Role {self.name}>"


# Where a role membership came from. Entra group sync only removes its own rows.
ROLE_SOURCE_MANUAL = "manual"
ROLE_SOURCE_ENTRA_GROUP = "entra_group"


class UserRole(Base):
    """Role membership row."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    source = Column(String(20), default=ROLE_SOURCE_MANUAL, nullable=False)

    # Relationships
    user = relationship("User", back_populates="user_roles", foreign_keys=[user_id])
    role = relationship("Role", lazy="joined")

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),)

    def __repr__(self):
        return f"<UserRole user={self.user_id} role={self.role_id}>"


class RefreshToken(Base):
    """Refresh token model for JWT token rotation."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(255), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens")

    @property
    def is_expired(self) -> bool:
        """Check if token is expired."""
        return utc_now() >= self.expires_at

    @property
    def is_revoked(self) -> bool:
        """Check if token is revoked."""
        return self.revoked_at is not None

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} expires={self.expires_at}>"
