"""Auth failure taxonomy.

Every failure is scoped to a single request: it carries the HTTP status
and the user-facing message, and nothing retries it. Callers can't branch
on a finer error code; the three 401 cases differ only in message text.
"""

NO_TOKEN_MESSAGE = "No autorizado, no hay token"
TOKEN_FAILED_MESSAGE = "No autorizado, token fallido o expirado"
USER_NOT_FOUND_MESSAGE = "No autorizado, usuario no encontrado"
ROLE_REQUIRED_MESSAGE = "Acceso denegado, no tienes el rol requerido"


class AuthError(Exception):
    """Base class for failures raised by the auth gates."""

    status_code: int = 401
    message: str = "No autorizado"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingCredential(AuthError):
    """No Authorization header, or one without the Bearer scheme."""

    message = NO_TOKEN_MESSAGE


class InvalidOrExpiredCredential(AuthError):
    """Bad signature, malformed token, expired token, or a failed lookup."""

    message = TOKEN_FAILED_MESSAGE


class UnknownSubject(AuthError):
    """Token verified but its subject has no user record."""

    message = USER_NOT_FOUND_MESSAGE


class InsufficientRole(AuthError):
    status_code = 403
    message = ROLE_REQUIRED_MESSAGE
