"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers (or in a router's
dependencies list) to run the gates from auth/gate.py:

    @router.get("/me")
    async def me(user: UserRead = Depends(require_user)): ...

    @router.get("/", dependencies=[Depends(require_roles("admin"))])

The gate itself comes from app.state (built by create_app with the
configured secret), and the user lookup comes from get_user_loader, which
tests override to avoid a database.
"""

from typing import Optional, Union

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.auth.gate import AuthenticationGate, UserLoader, authorize
from accessgate.db.engine import get_db
from accessgate.db.models import Role
from accessgate.schemas.user import UserRead
from accessgate.services.user_service import UserStore


def get_auth_gate(request: Request) -> AuthenticationGate:
    return request.app.state.auth_gate


async def get_user_loader(db: AsyncSession = Depends(get_db)) -> UserLoader:
    """Password-free lookup by id, backed by the request's DB session."""
    return UserStore(db).get_public


async def require_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    gate: AuthenticationGate = Depends(get_auth_gate),
    load_user: UserLoader = Depends(get_user_loader),
) -> UserRead:
    """Authenticate the request and attach the user to request.state."""
    user = await gate.authenticate(authorization, load_user)
    request.state.user = user
    return user


def require_roles(*roles: Union[Role, str]):
    """Dependency factory: 403 unless the authenticated user has one of roles.

    Learn: the guard is built here, once, when the route is declared, so a
    typo in a role name fails at import time instead of on the first request.
    """
    guard = authorize(*roles)

    async def check_role(
        request: Request, user: UserRead = Depends(require_user)
    ) -> UserRead:
        guard.check(getattr(request.state, "user", None))
        return user

    return check_role
