"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Authentication is applied at the include_router level using
FastAPI's dependencies parameter, so every route in the users router
runs the Authentication Gate. Role checks are per route, inside the
router. The health router is open.
"""

from fastapi import APIRouter, Depends

from accessgate.api.health import router as health_router
from accessgate.api.users import router as users_router
from accessgate.auth.dependencies import require_user

# All protected routers require authentication
_auth = [Depends(require_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes: require a valid Bearer JWT
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
