from functools import wraps
from flask import g, jsonify

def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return role_name in user.role_names

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN", "STAFF")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required", code="unauthenticated"), 401

            if not user.role_names.intersection(set(role_names)):
                return jsonify(error="Forbidden", code="forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
