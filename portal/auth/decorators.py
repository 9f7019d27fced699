# FILE: portal/auth/decorators.py

from functools import wraps
from flask import abort
from flask_login import current_user

def role_required(*role_names):
    """
    Decorator to check that the current user holds at least one of the given roles.
    Anonymous callers get 401, signed-in callers without the role get 403.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if not current_user.has_any_role(*role_names):
                abort(403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def admin_required(f):
    return role_required('Admin')(f)
