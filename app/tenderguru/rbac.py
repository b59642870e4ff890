from collections.abc import Callable
from functools import wraps
from typing import Any

import jwt
from flask import current_app, g, request

from app.tenderguru.db import db_session
from app.tenderguru.errors import AuthError
from app.tenderguru.models import User
from app.tenderguru.security import decode_token, token_from_request


def authenticate_request() -> User:
    """
    Resolve the session token on the current request to an active user.
    Raises AuthError(401) for every rejection reason.
    """
    token = token_from_request(request)
    if not token:
        raise AuthError("Authentication required")

    try:
        payload = decode_token(token, current_app.config["JWT_SECRET"])
    except jwt.PyJWTError as e:
        current_app.logger.info("JWT verification failed: %s", e)
        raise AuthError("Invalid or expired token") from None

    s = db_session()
    user = s.get(User, int(payload["id"]))
    if not user:
        raise AuthError("User no longer exists")
    if not user.is_active:
        raise AuthError("Your account has been deactivated")
    if user.changed_password_after(payload["iat"]):
        raise AuthError("Password changed - please log in again")
    return user


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        g.current_user = authenticate_request()
        return fn(*args, **kwargs)

    return wrapped


def user_has_role(user: User | None, roles: tuple[str, ...]) -> bool:
    return bool(user and user.is_active and user.role in roles)


def restrict_to(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Apply below `require_auth`: expects g.current_user to be set."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if user is None:
                raise AuthError("Authentication required")
            if not user_has_role(user, roles):
                current_app.logger.warning(
                    "Forbidden: user=%s role=%s needs one of %s request_id=%s",
                    user.id,
                    user.role,
                    ",".join(roles),
                    getattr(g, "request_id", None),
                )
                raise AuthError("You do not have permission to perform this action", 403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
