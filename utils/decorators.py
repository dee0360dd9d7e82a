from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from utils.tokens import Expired, TokenError


def jwt_required():
    """
    Require a valid `Authorization: Bearer <access token>`.
    The signature and expiry are checked without touching the store; the
    user is then loaded so handlers see current data in g.current_user.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            issuer = current_app.extensions["token_issuer"]
            try:
                claims = issuer.verify_access(token)
            except Expired:
                abort(401, description="Access token expired")
            except TokenError:
                abort(401, description="Invalid access token")

            store = current_app.extensions["auth_service"].store
            user = store.find_user_by_id(claims["sub"])
            if not user:
                abort(401, description="User not found")
            g.current_user = user
            g.current_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user's role is one of the required roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if g.current_user.role not in req:
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
