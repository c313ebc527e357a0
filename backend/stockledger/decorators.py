# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import request, jsonify, g

from .models import UserRole
from .permissions import has_feature
from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, 'current_user', None) is not None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user (the authenticated User) and g.session_token (the
    plaintext token, used by logout).

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_REQUIRED"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token", "code": "AUTHENTICATION_REQUIRED"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_feature(feature: str):
    """Require the current user's role to unlock a feature. Apply after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_REQUIRED"}), 401

            if not has_feature(g.current_user, feature):
                return jsonify({
                    "error": "Permission denied",
                    "code": "PERMISSION_DENIED",
                    "required_feature": feature,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_role(*roles):
    """Require one of the given roles. ADMIN always passes."""
    allowed = {UserRole(r) for r in roles} | {UserRole.ADMIN}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_REQUIRED"}), 401

            if g.current_user.role not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "code": "PERMISSION_DENIED",
                    "required_roles": sorted(r.value for r in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
