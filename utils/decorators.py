from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from models import storage
from models.user import User
from services.errors import AuthError


def jwt_required():
    """Require a valid access token in the ``Authorization: Bearer`` header."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            try:
                decoded = current_app.extensions["token_service"].verify_access_token(token)
            except AuthError as e:
                abort(401, description=e.message)

            user_id = decoded.get("userId")
            user = storage.get(User, user_id) if user_id else None
            if not user or user.username != decoded.get("username"):
                abort(401, description="User not found")
            g.current_user = user
            g.current_user_role = getattr(user.role, "value", user.role)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user's role is one of the required roles, 403 otherwise.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if getattr(g, "current_user_role", None) not in req:
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
