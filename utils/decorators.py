"""
Route decorators for authentication and authorization.
Provides role-based access control for routes.
"""

from functools import wraps
from flask_login import login_required, current_user

from utils.api_response import api_error
from utils.messages import MESSAGES

ADMIN_ROLES = ('admin', 'master_admin')


def role_required(*roles: str):
    """
    Decorator to require one of the given roles for a route.

    Usage:
        @bp.route('/admin/facilities')
        @login_required
        @role_required('admin', 'master_admin')
        def roster():
            ...

    Args:
        *roles: Role names allowed to call the route

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if getattr(current_user, 'role', None) not in roles:
                return api_error(MESSAGES['permission_denied'], status=403)
            return func(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(func):
    """Shortcut for role_required('admin', 'master_admin')."""
    return role_required(*ADMIN_ROLES)(func)


# Re-export login_required for convenience
__all__ = ['login_required', 'role_required', 'admin_required', 'ADMIN_ROLES']
