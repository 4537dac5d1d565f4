"""Authentication and authorization gates.

Learn: these are framework-free. The FastAPI wiring lives in
auth/dependencies.py; here we only decide, for a given header value and
user, whether the request may go on. Each gate either returns (pass) or
raises an AuthError subclass (halt).

AuthenticationGate steps:
1. No header / no "Bearer" prefix → MissingCredential
2. Signature, expiry or format failure → InvalidOrExpiredCredential
3. Valid token, no such user → UnknownSubject
4. Otherwise → the password-free user record
"""

from typing import Awaitable, Callable, Iterable, Optional, Union

import structlog

from accessgate.auth.errors import (
    InsufficientRole,
    InvalidOrExpiredCredential,
    MissingCredential,
    UnknownSubject,
)
from accessgate.auth.jwt import TokenError, decode_token
from accessgate.db.models import Role
from accessgate.schemas.user import UserRead

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer"
SUBJECT_CLAIM = "id"

# Resolves a subject identifier to the user, or None if there is none
UserLoader = Callable[[str], Awaitable[Optional[UserRead]]]


class AuthenticationGate:
    """Verifies Bearer tokens against a single injected secret."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self._secret = secret
        self.algorithm = algorithm

    async def authenticate(
        self, authorization: Optional[str], load_user: UserLoader
    ) -> UserRead:
        logger.debug("accessgate.auth.header", present=authorization is not None)

        if not authorization or not authorization.startswith(BEARER_PREFIX):
            logger.debug("accessgate.auth.no_token")
            raise MissingCredential()

        parts = authorization.split(" ")
        token = parts[1] if len(parts) > 1 else ""
        logger.debug("accessgate.auth.token_extracted", token_prefix=token[:10])

        try:
            payload = decode_token(token, self._secret, self.algorithm)
            logger.debug("accessgate.auth.token_decoded", payload=payload)

            subject = payload.get(SUBJECT_CLAIM)
            if subject is None:
                raise TokenError(f"Token has no '{SUBJECT_CLAIM}' claim")

            user = await load_user(str(subject))
        except TokenError as e:
            logger.info("accessgate.auth.token_rejected", reason=str(e))
            raise InvalidOrExpiredCredential()
        except Exception:
            logger.exception("accessgate.auth.lookup_failed")
            raise InvalidOrExpiredCredential()

        if user is None:
            logger.info("accessgate.auth.user_not_found", subject=str(subject))
            raise UnknownSubject()

        logger.debug("accessgate.auth.authenticated", user_id=str(user.id))
        return user


class RoleGuard:
    """Allows a fixed set of roles. Built once per route."""

    def __init__(self, roles: Iterable[Union[Role, str]]):
        # Role() raises ValueError for unknown names, at registration time
        self.roles = frozenset(Role(r) for r in roles)

    def allows(self, user: Optional[UserRead]) -> bool:
        if user is None:
            return False
        try:
            return Role(user.role) in self.roles
        except ValueError:
            return False

    def check(self, user: Optional[UserRead]) -> None:
        """Raise InsufficientRole unless the user holds an allowed role."""
        if not self.allows(user):
            logger.info(
                "accessgate.auth.role_denied",
                role=getattr(user, "role", None),
                allowed=sorted(r.value for r in self.roles),
            )
            raise InsufficientRole()


def authorize(*roles: Union[Role, str]) -> RoleGuard:
    """Build a guard for the given roles, e.g. authorize("admin", "employee")."""
    return RoleGuard(roles)
