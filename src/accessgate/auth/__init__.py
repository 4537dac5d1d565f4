"""Authentication and authorization.

Learn: two gates sit in front of every protected route:
1. AuthenticationGate → Bearer JWT → user record (password excluded)
2. RoleGuard → user.role must be in the route's allowed set

Both halt the request by raising an AuthError subclass; the app turns
that into a JSON {"message": ...} response with the error's status code.
"""
