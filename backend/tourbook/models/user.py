"""
User model with secure password storage.

Key design decisions:
- `password` holds the bcrypt hash only; responses never include it
- `active` is a soft-delete marker, inactive users are hidden from default queries
- `password_changed_at` lets the auth guard reject tokens issued before a password change
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from tourbook.db.base import Base, TimestampMixin, version_column

ROLES = ("user", "guide", "lead-guide", "admin")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    photo = Column(String(255), nullable=False, default="default.jpg")
    role = Column(String(20), nullable=False, default="user")
    password = Column(String(255), nullable=False)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    version = version_column()

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("role IN ('user', 'guide', 'lead-guide', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
