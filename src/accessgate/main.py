"""FastAPI application factory.

Learn: App factory pattern: create_app() returns a configured FastAPI
instance. The Settings object is passed in (defaulting to the env-loaded
one) and everything that depends on it is built once and stored on
app.state: the authentication gate, the database engine and its session
factory. Two apps with two secrets can live in the same process.

Every error leaves as {"message": ...}: gate failures, HTTPExceptions
raised by routes (404, 409) and request validation errors, which also
carry the field errors under "errors".
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accessgate import __version__
from accessgate.api import api_router
from accessgate.auth.errors import AuthError
from accessgate.auth.gate import AuthenticationGate
from accessgate.config import Settings, settings as default_settings
from accessgate.db.engine import build_engine, build_session_factory
from accessgate.log_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    config: Settings = app.state.settings
    logger.info(
        "accessgate.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
    )

    yield

    logger.info("accessgate.shutdown")
    await app.state.engine.dispose()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Turn a gate failure into {"message": ...} with its status code."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=headers,
    )


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title="accessgate",
        description="Bearer-token authentication and role-based access control",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth_gate = AuthenticationGate(
        settings.jwt_secret, algorithm=settings.jwt_algorithm
    )
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler

    from accessgate.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


configure_logging(
    level=default_settings.log_level,
    json_logs=default_settings.environment != "development",
)

# Default app instance (used by uvicorn: accessgate.main:app)
app = create_app()
