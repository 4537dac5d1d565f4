"""User service: persistence rules for user records.

Learn: Service layer separates business logic from HTTP routing.
Every write goes through prepare_for_persistence(), called explicitly by
UserStore rather than hooked into an ORM event, so the rules are visible
at the call site:

1. Identity fields: username, email and dni trimmed, email lowercased,
   phone, dni and email checked against their formats
2. Role defaults: employees get status=True, other roles status=NULL
3. Password hashing: only for new records, or when the password
   attribute was changed since the last flush
"""

import re
import uuid
from typing import Optional, Union

import structlog
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.auth.password import DEFAULT_ROUNDS, hash_password
from accessgate.db.models import Role, User
from accessgate.schemas.user import (
    DNI_PATTERN,
    EMAIL_PATTERN,
    PHONE_PATTERN,
    UserCreate,
    UserRead,
)

logger = structlog.get_logger()

UNIQUE_FIELDS = ("username", "email", "dni")

_FORMATS = {
    "phone_number": PHONE_PATTERN,
    "email": EMAIL_PATTERN,
    "dni": DNI_PATTERN,
}

# Everything UserRead exposes; the password column is never selected
_PUBLIC_COLUMNS = [getattr(User, name) for name in UserRead.model_fields]


class DuplicateUserError(Exception):
    """A username, email or dni is already taken."""

    def __init__(self, field: Optional[str] = None):
        self.field = field
        super().__init__(f"User with this {field or 'identity'} already exists")


class InvalidUserError(ValueError):
    """A field doesn't match its required format."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Invalid {field}")


def normalize_identity(user: User) -> User:
    """Trim username, email and dni, lowercase email, then check formats.

    Raises InvalidUserError naming the first field that is missing or
    malformed.
    """
    for field in ("username", "email", "dni"):
        value = getattr(user, field)
        if isinstance(value, str):
            cleaned = value.strip()
            if field == "email":
                cleaned = cleaned.lower()
            if cleaned != value:
                setattr(user, field, cleaned)

    if not user.username:
        raise InvalidUserError("username")
    for field, pattern in _FORMATS.items():
        value = getattr(user, field)
        if not isinstance(value, str) or not re.fullmatch(pattern, value):
            raise InvalidUserError(field)
    return user


def apply_role_defaults(user: User) -> User:
    """Re-apply the role/status rule to an entity."""
    if user.role is None:
        user.role = Role.USER.value
    role = Role(user.role)
    if isinstance(user.role, Role):
        user.role = role.value

    if role == Role.EMPLOYEE:
        if user.status is None:
            user.status = True
    elif user.status is not None:
        user.status = None
    return user


def prepare_for_persistence(user: User, rounds: int = DEFAULT_ROUNDS) -> User:
    """Sanitize a user right before it's written.

    Hashes the password if the record is new or the password attribute
    has a pending change. A hash this function produced is never hashed
    again, so calling it twice before a flush is harmless.
    """
    normalize_identity(user)
    apply_role_defaults(user)

    state = sa_inspect(user)
    is_new = state.transient or state.pending
    password_changed = state.attrs.password.history.has_changes()
    if not password_changed and not is_new:
        return user

    if user.password and user.password == getattr(user, "_prepared_hash", None):
        return user
    if not user.password:
        raise ValueError("password is required")

    hashed = hash_password(user.password, rounds=rounds)
    user.password = hashed
    user._prepared_hash = hashed
    return user


def _duplicate_field(error: IntegrityError) -> Optional[str]:
    """Work out which unique field an IntegrityError is about."""
    text = str(error.orig)
    for field in UNIQUE_FIELDS:
        if f"uq_users_{field}" in text or f"users.{field}" in text:
            return field
    return None


class UserStore:
    """Async persistence for users."""

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = DEFAULT_ROUNDS):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    # ─── Reads ──────────────────────────────────────────

    async def get_public(
        self, user_id: Union[str, uuid.UUID]
    ) -> Optional[UserRead]:
        """Look up a user by id without ever loading the password.

        Raises ValueError if user_id isn't a valid UUID.
        """
        if not isinstance(user_id, uuid.UUID):
            user_id = uuid.UUID(str(user_id))
        result = await self.db.execute(
            select(*_PUBLIC_COLUMNS).where(User.id == user_id)
        )
        row = result.mappings().first()
        if row is None:
            return None
        return UserRead.model_validate(dict(row))

    async def list_public(self) -> list[UserRead]:
        result = await self.db.execute(
            select(*_PUBLIC_COLUMNS).order_by(User.username)
        )
        return [UserRead.model_validate(dict(row)) for row in result.mappings()]

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.username == username.strip())
        )
        return result.scalars().first()

    # ─── Writes ─────────────────────────────────────────

    async def create(self, data: UserCreate) -> User:
        fields = data.model_dump()
        fields["role"] = data.role.value
        user = User(**fields)
        await self.save(user)
        logger.info("accessgate.users.created", user_id=str(user.id), role=user.role)
        return user

    async def save(self, user: User) -> User:
        """Prepare and commit. Raises DuplicateUserError on unique violations."""
        prepare_for_persistence(user, rounds=self.bcrypt_rounds)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            field = _duplicate_field(e)
            logger.info("accessgate.users.duplicate", field=field)
            raise DuplicateUserError(field) from e
        await self.db.refresh(user)
        return user
