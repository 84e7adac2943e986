"""
Permission decorators for role-based access control.

Permissions are read from the current user's role (loaded by the
middleware on every request) and checked with the fail-closed
permission service.
"""

from functools import wraps
from flask import g

from gymapp.exceptions import AuthenticationError, AuthorizationError
from gymapp.services.permission_service import parse_permission_key, authorize, is_allowed


def _require_user():
    if g.get('user') is None:
        raise AuthenticationError(g.get('auth_error') or 'Not authenticated')


def require_permission(permission_key):
    """
    Decorator to check for a specific resource permission.

    Usage:
        @require_permission('orders.read')
        @require_permission('roles.create')

    Args:
        permission_key: 'resource.action'; an unknown key fails at import time
    """
    resource, action = parse_permission_key(permission_key)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            _require_user()
            authorize(g.role, resource, action)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(permission_keys):
    """
    Decorator passing when the role holds at least one of the permissions.

    Usage:
        @require_any_permission(['orders.read', 'orders.update'])
    """
    parsed = [parse_permission_key(key) for key in permission_keys]

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            _require_user()
            role = g.role
            if role is None or role.deleted_at is not None or not any(
                is_allowed(role.permissions, resource, action) for resource, action in parsed
            ):
                raise AuthorizationError()
            return f(*args, **kwargs)

        return decorated_function
    return decorator
