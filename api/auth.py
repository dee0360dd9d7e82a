"""
Authentication blueprint:
- POST  /auth/register
- POST  /auth/login
- POST  /auth/google
- POST  /auth/refresh
- POST  /auth/logout
- POST  /auth/logout-all
- GET   /auth/profile
- PATCH /auth/profile
- POST  /auth/change-password
- POST  /auth/users/<user_id>/logout-all (super_admin only)

The handlers only parse requests, call AuthService and shape responses.
The refresh token travels in an HttpOnly cookie and is also returned in
the login body for non-browser clients.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from api import audit
from api.errors import NotFound
from models.schemas.user import (
    ChangePasswordSchema,
    GoogleSignInSchema,
    LoginSchema,
    RegisterSchema,
    UpdateProfileSchema,
)
from utils.decorators import jwt_required, roles_required

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
google_schema = GoogleSignInSchema()
update_profile_schema = UpdateProfileSchema()
change_password_schema = ChangePasswordSchema()


def _service():
    return current_app.extensions["auth_service"]


def _refresh_token_from_request() -> str | None:
    """An explicit body token wins over the cookie."""
    payload = request.get_json(silent=True) or {}
    token = payload.get("refresh_token") if isinstance(payload, dict) else None
    if not isinstance(token, str):
        token = None
    return token or request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"]) or None


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": current_app.config["REFRESH_COOKIE_SECURE"],
        "samesite": "Strict",
        "path": current_app.config["REFRESH_COOKIE_PATH"],
    }


def _session_response(result: dict):
    response = jsonify(
        {
            "data": {
                "user": result["user"],
                "access_token": result["access_token"],
                "refresh_token": result["refresh_token"],
                "expires_at": result["expires_at"].isoformat(),
                "token_type": "bearer",
            }
        }
    )
    max_age = int(current_app.config["REFRESH_TOKEN_EXPIRES"].total_seconds())
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        result["refresh_token"],
        max_age=max_age,
        **_cookie_options(),
    )
    return response


def _clear_refresh_cookie(response):
    response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **_cookie_options())
    return response


@bp.post("/register")
def register():
    """
    Register a new account.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            full_name: { type: string }
            phone: { type: string }
            role: { type: string, enum: [customer, manager] }
    responses:
      201:
        description: Created
      409:
        description: Account exists
      422:
        description: Validation error
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    user = _service().register(
        email=data["email"],
        password=data["password"],
        full_name=data["full_name"],
        phone=data.get("phone"),
        role=data.get("role"),
    )
    audit.record("REGISTER", user["id"], email=user["email"], role=user["role"])
    return jsonify(
        {
            "message": "Registration successful. Please verify your email.",
            "data": {"user": user},
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login with email (or phone) and password
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             identifier: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens, sets refresh cookie)
      401:
        description: Invalid credentials
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    identifier = data.get("identifier") or data.get("email")
    result = _service().login(identifier, data["password"])
    audit.record("LOGIN", result["user"]["id"], result["user"]["tenant_id"])
    return _session_response(result), 200


@bp.post("/google")
def google_sign_in():
    """
    Sign in with a Google ID token; creates or links the account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             id_token: { type: string }
    responses:
      200:
        description: OK (returns tokens, sets refresh cookie)
      400:
        description: Not configured, or token without email
      401:
        description: Invalid Google token
    """
    data = google_schema.load(request.get_json(silent=True) or {})
    result = _service().federated_login(data["id_token"])
    audit.record("GOOGLE_LOGIN", result["user"]["id"], result["user"]["tenant_id"])
    return _session_response(result), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access token
    The refresh token is read from the cookie, or from { "refresh_token": "<token>" }.
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK
      401:
        description: Missing, invalid, revoked or expired refresh token
    """
    result = _service().refresh(_refresh_token_from_request())
    return jsonify(
        {
            "data": {
                "user": result["user"],
                "access_token": result["access_token"],
                "token_type": "bearer",
            }
        }
    ), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token (no-op when absent)
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out
    """
    token = _refresh_token_from_request()
    _service().logout(token)
    if token:
        audit.record("LOGOUT", None)
    response = jsonify({"message": "Logged out successfully."})
    return _clear_refresh_cookie(response), 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Revoke every refresh token of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out everywhere
      401:
        description: Unauthorized
    """
    user = g.current_user
    _service().logout_all(user.id)
    audit.record("LOGOUT_ALL", user.id, user.tenant_id)
    response = jsonify({"message": "Logged out from all devices."})
    return _clear_refresh_cookie(response), 200


@bp.get("/profile")
@jwt_required()
def get_profile():
    """
    Current user's profile
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": _service().get_profile(g.current_user.id)}), 200


@bp.patch("/profile")
@jwt_required()
def update_profile():
    """
    Update full name and/or phone
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             full_name: { type: string }
             phone: { type: string }
    responses:
      200:
        description: OK
      409:
        description: Phone already in use
    """
    data = update_profile_schema.load(request.get_json(silent=True) or {})
    return jsonify({"data": _service().update_profile(g.current_user.id, **data)}), 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change (or, for Google-only accounts, set) the password
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      401:
        description: Current password is incorrect
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    result = _service().change_password(
        g.current_user.id, data.get("current_password"), data["new_password"]
    )
    return jsonify(result), 200


@bp.post("/users/<user_id>/logout-all")
@roles_required(["super_admin"])
def force_logout_all(user_id: str):
    """
    Admin-only: sign a user out everywhere
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    service = _service()
    target = service.store.find_user_by_id(user_id)
    if target is None:
        raise NotFound()
    service.logout_all(target.id)
    audit.record("LOGOUT_ALL", target.id, target.tenant_id, by=g.current_user.id)
    return jsonify({"message": "User logged out from all devices."}), 200
