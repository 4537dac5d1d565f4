"""SQLAlchemy ORM models: single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations mirror these models.

Key concepts:
- UUID primary keys, using the generic Uuid type (native on PostgreSQL,
  CHAR(32) elsewhere) so the schema also builds on SQLite in tests
- Named unique constraints, so integrity errors can be mapped to a field
- server_default for DB-level defaults (work even for raw SQL inserts)
"""

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from accessgate.auth.password import verify_password


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class Role(str, enum.Enum):
    """Coarse permission tier used for route-level access decisions."""

    USER = "user"
    EMPLOYEE = "employee"
    ADMIN = "admin"


class User(Base):
    """An account holder.

    Learn: `password` holds a bcrypt hash once persisted. The plaintext
    only exists in memory between assignment and the store's
    prepare_for_persistence() step. `status` only applies to employees
    and stays NULL for every other role.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("dni", name="uq_users_dni"),
        CheckConstraint(
            "role IN ('user', 'employee', 'admin')", name="ck_users_role"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(15), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    dni: Mapped[str] = mapped_column(String(9), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.USER.value,
        server_default=Role.USER.value,
    )
    status: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Password reset (filled by the reset flow)
    reset_password_token: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, default=None
    )
    reset_password_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    # Two-factor codes (filled by the 2FA flow)
    two_factor_code: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, default=None
    )
    two_factor_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    def match_password(self, candidate: str) -> bool:
        """Check a plaintext candidate against the stored hash."""
        return verify_password(candidate, self.password)

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"
