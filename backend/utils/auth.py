# utils/auth.py
from __future__ import annotations

from functools import wraps

from flask import current_app
from flask_jwt_extended import get_current_user, get_jwt, verify_jwt_in_request

from backend.errors import ForbiddenError, UnauthorizedError, error_response
from backend.extensions import jwt


def auth_required(*roles, optional: bool = False):
    """
    Require a valid Bearer access token for an active (and, when configured,
    verified) user. With ``roles`` the user's role must be one of them.
    ``optional`` lets anonymous callers through with no current user.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request(optional=optional)
            if get_jwt().get("purpose"):
                raise UnauthorizedError("Invalid token.", code="AUTH_INVALID_TOKEN")

            user = get_current_user()
            if user is None:
                return fn(*args, **kwargs)

            if not user.is_active:
                raise ForbiddenError("Account is disabled.", code="AUTH_ACCOUNT_DISABLED")
            if current_app.config.get("REQUIRE_EMAIL_VERIFICATION", True) and not user.email_verified:
                raise ForbiddenError("Email not verified.", code="AUTH_EMAIL_NOT_VERIFIED")
            if roles and user.role not in roles:
                raise ForbiddenError(
                    "Access denied. Insufficient permissions.",
                    code="AUTH_INSUFFICIENT_PERMISSIONS",
                    payload={"requiredRoles": list(roles)},
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator


# ─────────────────────────────────────────────────────────────
# Flask-JWT-Extended callbacks
# ─────────────────────────────────────────────────────────────
@jwt.user_lookup_loader
def _load_user(_jwt_header, jwt_data):
    try:
        user_id = int(jwt_data["sub"])
    except (KeyError, TypeError, ValueError):
        return None
    return current_app.extensions["services"].users.get(user_id)


@jwt.user_lookup_error_loader
def _user_not_found(_jwt_header, _jwt_data):
    return error_response("User not found. Token invalid.", "AUTH_USER_NOT_FOUND", 401)


@jwt.unauthorized_loader
def _missing_token(reason):
    return error_response("Access denied. No token provided.", "AUTH_NO_TOKEN", 401)


@jwt.expired_token_loader
def _expired_token(_jwt_header, _jwt_data):
    return error_response("Token expired.", "AUTH_TOKEN_EXPIRED", 401)


@jwt.invalid_token_loader
def _invalid_token(reason):
    return error_response("Invalid token.", "AUTH_INVALID_TOKEN", 401)
