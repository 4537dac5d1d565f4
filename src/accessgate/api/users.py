"""Users API: protected routes behind the auth gates.

Learn: The whole router is mounted with require_user (see api/__init__.py).
Individual routes add require_roles(...) for role checks:
- GET /users/me → any authenticated user
- GET /users → admin
- POST /users → admin
- GET /users/:id → admin or employee

HTTPExceptions raised here leave as {"message": ...}, the same shape as
gate failures (see the handlers in main.py).
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.auth.dependencies import require_roles, require_user
from accessgate.db.engine import get_db
from accessgate.db.models import Role
from accessgate.schemas.user import UserCreate, UserRead
from accessgate.services.user_service import (
    DuplicateUserError,
    InvalidUserError,
    UserStore,
)

router = APIRouter(prefix="/users")

_admin = require_roles(Role.ADMIN)
_staff = require_roles(Role.ADMIN, Role.EMPLOYEE)


def _store(request: Request, db: AsyncSession) -> UserStore:
    return UserStore(db, bcrypt_rounds=request.app.state.settings.bcrypt_rounds)


@router.get("/me", response_model=UserRead)
async def get_me(user: UserRead = Depends(require_user)):
    """The authenticated user's own record."""
    return user


@router.get("", response_model=list[UserRead], dependencies=[Depends(_admin)])
async def list_users(request: Request, db: AsyncSession = Depends(get_db)):
    return await _store(request, db).list_public()


@router.post(
    "",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(_admin)],
)
async def create_user(
    body: UserCreate, request: Request, db: AsyncSession = Depends(get_db)
):
    """Create a user record (admin only)."""
    try:
        user = await _store(request, db).create(body)
    except DuplicateUserError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidUserError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return UserRead.model_validate(user)


@router.get("/{user_id}", response_model=UserRead, dependencies=[Depends(_staff)])
async def get_user(
    user_id: uuid.UUID, request: Request, db: AsyncSession = Depends(get_db)
):
    user = await _store(request, db).get_public(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
