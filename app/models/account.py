"""ORM model for accounts: credentials, role, and failed-login lockout state."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from app.models.base import Base, timestamp_column


class Account(Base):
    """
    User account for JWT authentication and role-based access control.

    role: 'admin' or 'user'
    failed_login_attempts / locked_until drive the login lockout; both reset on a successful login.
    """

    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("role IN ('admin', 'user')", name="ck_accounts_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(50), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = timestamp_column()
    updated_at = timestamp_column()
