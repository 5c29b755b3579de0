from functools import wraps

from flask import jsonify, current_app, request
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity


def role_required(*roles):
    """
    Lets the request through only when the JWT ``role`` claim is one of ``roles``.
    Accepts plain strings or UserRole members.
    """
    allowed = {getattr(r, "value", r) for r in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            role = get_jwt().get("role")
            if role not in allowed:
                current_app.logger.warning(
                    f"[auth] forbidden: user={get_jwt_identity()} role={role} path={request.path}"
                )
                return jsonify({"success": False, "error": "forbidden", "message": "Forbidden"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
