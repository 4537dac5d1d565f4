"""accessgate: authentication and authorization for the web backend.

Bearer-token verification, role-based route guards, and the user record
with its password-hashing rules.
"""

__version__ = "0.1.0"
