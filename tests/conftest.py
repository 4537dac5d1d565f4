"""Test fixtures.

Learn: Two kinds of fixtures live here:

1. `client`: an app built with a test secret whose user lookup is
   overridden by an in-memory dict. Exercises the whole gate chain
   (header → JWT → lookup → role) with no database at all.
2. `db_session`: per-test PostgreSQL session with automatic rollback via
   savepoints (join_transaction_mode="create_savepoint"), used by the
   store tests. Skips when PostgreSQL isn't reachable.

Plus `sync_session`, an in-memory SQLite session for entity-level tests
(hashing on save, unique constraints) that don't need async I/O.
"""

import uuid
from datetime import date, datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from fastapi import APIRouter, Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Session

from accessgate.auth.dependencies import get_user_loader, require_roles, require_user
from accessgate.config import Settings, settings
from accessgate.db.models import Base, Role
from accessgate.main import create_app
from accessgate.schemas.user import UserRead

TEST_SECRET = "test-secret-for-accessgate"
OTHER_SECRET = "some-other-secret"
TEST_DB_URL = settings.database_url

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
EMPLOYEE_ID = uuid.UUID("00000000-0000-0000-0000-00000000000e")
USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


def make_token(
    subject,
    secret: str = TEST_SECRET,
    expires_in: timedelta = timedelta(minutes=30),
    **claims,
) -> str:
    """Sign a token the way the login flow does: subject under "id"."""
    payload = {"exp": datetime.now(timezone.utc) + expires_in, **claims}
    if subject is not None:
        payload["id"] = str(subject)
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_user_read(user_id: uuid.UUID, role: Role, username: str) -> UserRead:
    return UserRead(
        id=user_id,
        name="Ana",
        last_name="García",
        phone_number="1155551234",
        username=username,
        email=f"{username}@example.com",
        dni="30111222",
        date_of_birth=date(1990, 5, 17),
        role=role,
        status=True if role == Role.EMPLOYEE else None,
    )


def user_fields(**overrides) -> dict:
    """Valid UserCreate / User keyword arguments."""
    fields = {
        "name": "Lucía",
        "last_name": "Pérez",
        "phone_number": "1144443333",
        "username": "lperez",
        "email": "lucia@example.com",
        "password": "s3cret-passw0rd",
        "dni": "28999111",
        "date_of_birth": date(1988, 2, 3),
    }
    fields.update(overrides)
    return fields


@pytest.fixture()
def known_users() -> dict[str, UserRead]:
    users = [
        make_user_read(ADMIN_ID, Role.ADMIN, "admin"),
        make_user_read(EMPLOYEE_ID, Role.EMPLOYEE, "employee"),
        make_user_read(USER_ID, Role.USER, "plainuser"),
    ]
    return {str(u.id): u for u in users}


@pytest.fixture()
def app(known_users):
    """App with the test secret, in-memory user lookup, and a few guarded routes."""
    application = create_app(Settings(jwt_secret=TEST_SECRET))

    async def load_user(subject: str):
        return known_users.get(subject)

    async def override_get_user_loader():
        return load_user

    application.dependency_overrides[get_user_loader] = override_get_user_loader

    guarded = APIRouter(prefix="/guarded")

    @guarded.get("/admin", dependencies=[Depends(require_roles(Role.ADMIN))])
    async def admin_only():
        return {"ok": True}

    @guarded.get("/staff")
    async def staff_only(user: UserRead = Depends(require_roles("admin", "employee"))):
        return {"username": user.username}

    @guarded.get("/me")
    async def me(user: UserRead = Depends(require_user)):
        return {"id": str(user.id), "fields": sorted(user.model_dump())}

    application.include_router(guarded)
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def sync_session():
    """In-memory SQLite session with the schema created."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest_asyncio.fixture()
async def db_session():
    """Per-test PostgreSQL session with automatic rollback via savepoints.

    Tables are created inside the outer transaction, so they vanish with
    the rollback too (PostgreSQL DDL is transactional).
    """
    engine = create_async_engine(TEST_DB_URL, echo=False)
    try:
        conn = await engine.connect()
    except Exception as e:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {e}")

    try:
        trans = await conn.begin()
        await conn.run_sync(Base.metadata.create_all)
        session = AsyncSession(
            bind=conn,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )
        try:
            yield session
        finally:
            await session.close()
            await trans.rollback()
    finally:
        await conn.close()
        await engine.dispose()
