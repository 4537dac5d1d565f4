"""Unit tests for the gates, without FastAPI.

Learn: AuthenticationGate.authenticate() takes the raw header and a
lookup coroutine, so every branch can be driven directly.
"""

from datetime import timedelta

import pytest

from accessgate.auth.errors import (
    NO_TOKEN_MESSAGE,
    ROLE_REQUIRED_MESSAGE,
    TOKEN_FAILED_MESSAGE,
    USER_NOT_FOUND_MESSAGE,
    InsufficientRole,
    InvalidOrExpiredCredential,
    MissingCredential,
    UnknownSubject,
)
from accessgate.auth.gate import AuthenticationGate, RoleGuard, authorize
from accessgate.db.models import Role

from conftest import (
    ADMIN_ID,
    EMPLOYEE_ID,
    OTHER_SECRET,
    TEST_SECRET,
    USER_ID,
    make_token,
)


class RecordingLoader:
    """Lookup stub that remembers which subjects it was asked for."""

    def __init__(self, users):
        self.users = users
        self.calls = []

    async def __call__(self, subject):
        self.calls.append(subject)
        return self.users.get(subject)


@pytest.fixture()
def gate():
    return AuthenticationGate(TEST_SECRET)


@pytest.fixture()
def loader(known_users):
    return RecordingLoader(known_users)


# ═══════════════════════════════════════════════════════════
# Authentication gate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_valid_token_resolves_user(gate, loader):
    token = make_token(ADMIN_ID)
    user = await gate.authenticate(f"Bearer {token}", loader)
    assert user.id == ADMIN_ID
    assert user.role == Role.ADMIN
    assert loader.calls == [str(ADMIN_ID)]


@pytest.mark.asyncio
async def test_resolved_user_has_no_password(gate, loader):
    user = await gate.authenticate(f"Bearer {make_token(USER_ID)}", loader)
    assert not hasattr(user, "password")


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "", "Basic dXNlcjpwYXNz", "bearer abc", "Token abc"])
async def test_missing_or_non_bearer_header(gate, loader, header):
    with pytest.raises(MissingCredential) as exc:
        await gate.authenticate(header, loader)
    assert exc.value.status_code == 401
    assert exc.value.message == NO_TOKEN_MESSAGE
    assert loader.calls == []


@pytest.mark.asyncio
async def test_expired_token(gate, loader):
    token = make_token(ADMIN_ID, expires_in=timedelta(seconds=-30))
    with pytest.raises(InvalidOrExpiredCredential) as exc:
        await gate.authenticate(f"Bearer {token}", loader)
    assert exc.value.message == TOKEN_FAILED_MESSAGE
    assert loader.calls == []


@pytest.mark.asyncio
async def test_token_signed_with_other_secret(gate, loader):
    token = make_token(ADMIN_ID, secret=OTHER_SECRET)
    with pytest.raises(InvalidOrExpiredCredential):
        await gate.authenticate(f"Bearer {token}", loader)


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Bearer not.a.jwt", "Bearer garbage", "Bearer", "Bearer ", "Bearerabc"])
async def test_malformed_token(gate, loader, header):
    with pytest.raises(InvalidOrExpiredCredential):
        await gate.authenticate(header, loader)
    assert loader.calls == []


@pytest.mark.asyncio
async def test_token_without_subject_claim(gate, loader):
    token = make_token(None, role="admin")
    with pytest.raises(InvalidOrExpiredCredential):
        await gate.authenticate(f"Bearer {token}", loader)


@pytest.mark.asyncio
async def test_unknown_subject(gate, loader):
    token = make_token("00000000-0000-0000-0000-0000000000ff")
    with pytest.raises(UnknownSubject) as exc:
        await gate.authenticate(f"Bearer {token}", loader)
    assert exc.value.status_code == 401
    assert exc.value.message == USER_NOT_FOUND_MESSAGE


@pytest.mark.asyncio
async def test_lookup_failure_is_reported_as_bad_token(gate):
    """A crashing lookup (e.g. unparseable id) is normalized to 401."""

    async def broken_loader(subject):
        raise ValueError(f"badly formed hexadecimal UUID string: {subject}")

    token = make_token("not-a-uuid")
    with pytest.raises(InvalidOrExpiredCredential):
        await gate.authenticate(f"Bearer {token}", broken_loader)


@pytest.mark.asyncio
async def test_empty_secret_rejects_everything(loader):
    gate = AuthenticationGate("")
    with pytest.raises(InvalidOrExpiredCredential):
        await gate.authenticate(f"Bearer {make_token(ADMIN_ID)}", loader)


@pytest.mark.asyncio
async def test_gates_with_different_secrets_are_independent(loader):
    token = make_token(ADMIN_ID, secret=OTHER_SECRET)
    other = AuthenticationGate(OTHER_SECRET)
    user = await other.authenticate(f"Bearer {token}", loader)
    assert user.id == ADMIN_ID

    with pytest.raises(InvalidOrExpiredCredential):
        await AuthenticationGate(TEST_SECRET).authenticate(f"Bearer {token}", loader)


# ═══════════════════════════════════════════════════════════
# Role guard
# ═══════════════════════════════════════════════════════════


def test_guard_allows_listed_role(known_users):
    guard = authorize("admin", "employee")
    guard.check(known_users[str(ADMIN_ID)])
    guard.check(known_users[str(EMPLOYEE_ID)])


def test_guard_rejects_other_role(known_users):
    guard = authorize(Role.ADMIN)
    with pytest.raises(InsufficientRole) as exc:
        guard.check(known_users[str(USER_ID)])
    assert exc.value.status_code == 403
    assert exc.value.message == ROLE_REQUIRED_MESSAGE


def test_guard_rejects_missing_user():
    with pytest.raises(InsufficientRole):
        authorize(Role.USER, Role.EMPLOYEE, Role.ADMIN).check(None)


def test_guard_with_no_roles_allows_nobody(known_users):
    guard = authorize()
    assert not any(guard.allows(u) for u in known_users.values())


def test_guard_accepts_enum_and_string_roles():
    assert authorize(Role.ADMIN).roles == authorize("admin").roles == frozenset({Role.ADMIN})


def test_guard_rejects_unknown_role_name():
    with pytest.raises(ValueError):
        RoleGuard(["superuser"])
