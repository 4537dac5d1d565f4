"""Password hashing utilities.

Learn: Uses bcrypt for password hashing. bcrypt generates a random salt
per hash and embeds it (plus the work factor) in the output, so the
stored string is all that's needed to verify later.
The default work factor is 10 rounds, matching the hashes already stored
by the previous Node backend ($2a$10$...), which bcrypt verifies as-is.
"""

import bcrypt

DEFAULT_ROUNDS = 10


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with a fresh bcrypt salt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. False for malformed hashes."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError, AttributeError):
        return False

