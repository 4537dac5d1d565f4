"""JWT verification.

Learn: tokens are issued elsewhere (the login flow) with the same shared
secret and algorithm. This side only verifies: signature, expiry, and
that the payload is an object. The subject lives under the "id" claim.
"""

import jwt


class TokenError(Exception):
    """Raised when token verification fails."""


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    if not token:
        raise TokenError("Empty token")
    if not secret:
        raise TokenError("No verification secret configured")
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")
    if not isinstance(payload, dict):
        raise TokenError("Token payload is not an object")
    return payload
