from functools import wraps
from flask import abort
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from ..models.user import User


def roles_required(*allowed_roles: str):
    """
    Verify the access token and restrict the endpoint to the given roles.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            role = (get_jwt() or {}).get("role")
            if role not in allowed_roles:
                abort(403, description="Insufficient permissions")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = roles_required(User.ROLE_ADMIN)
