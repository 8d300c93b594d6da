"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- GET  /auth/refresh
- POST /auth/logout

The refresh token travels only in the HTTP-only cookie ``jwt``; the access token
only in the JSON body. Token rotation and reuse detection live in AuthService.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, abort, current_app, after_this_request

from models.schemas.user import RegisterSchema, LoginSchema, AuthResponseSchema
from services.auth_service import AuthService

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
auth_response_schema = AuthResponseSchema()


def _auth_service() -> AuthService:
    return current_app.extensions["auth_service"]


def _cookie_name() -> str:
    return current_app.config["REFRESH_COOKIE_NAME"]


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "samesite": current_app.config["REFRESH_COOKIE_SAMESITE"],
        "secure": current_app.config["REFRESH_COOKIE_SECURE"],
        "path": "/",
    }


def set_refresh_cookie(response, token: str):
    max_age = int(current_app.config["REFRESH_COOKIE_MAX_AGE"].total_seconds())
    response.set_cookie(_cookie_name(), token, max_age=max_age, **_cookie_options())
    return response


def clear_refresh_cookie(response):
    response.delete_cookie(_cookie_name(), **_cookie_options())
    return response


@bp.post("/auth/register")
def register():
    """
    Register a new client account.
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
            username: { type: string }
            password: { type: string }
            confirmPassword: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error / passwords do not match
      409:
        description: Username already registered
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    _auth_service().register(data["username"], data["password"])

    return jsonify({"message": "Account created successfully"}), 201


@bp.post("/auth/login")
def login():
    """
    Login: returns an access token and sets the refresh token cookie
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
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (accessToken, role, userId, username)
      401:
        description: Unauthorized
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)
    existing = request.cookies.get(_cookie_name())

    result = _auth_service().login(data["username"], data["password"], existing)

    response = jsonify(auth_response_schema.dump(result))
    if existing:
        clear_refresh_cookie(response)
    set_refresh_cookie(response, result.refresh_token)
    return response, 200


@bp.get("/auth/refresh")
def refresh():
    """
    Rotate the refresh token cookie and issue a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (accessToken, role, userId, username)
      401:
        description: Missing, invalid, expired or reused refresh token
    """
    existing = request.cookies.get(_cookie_name())
    if existing:
        @after_this_request
        def drop_rejected_cookie(response):
            if response.status_code >= 400:
                clear_refresh_cookie(response)
            return response

    result = _auth_service().refresh(existing)

    response = jsonify(auth_response_schema.dump(result))
    if existing:
        clear_refresh_cookie(response)
    set_refresh_cookie(response, result.refresh_token)
    return response, 200


@bp.post("/auth/logout")
def logout():
    """
    Logout: drops the session behind the refresh token cookie
    ---
    tags:
      - Auth
    responses:
      204:
        description: ""
      400:
        description: No refresh token provided
      404:
        description: Session not found
    """
    existing = request.cookies.get(_cookie_name())
    if not existing:
        abort(400, description="No refresh token provided")

    @after_this_request
    def drop_cookie(response):
        return clear_refresh_cookie(response)

    if not _auth_service().logout(existing):
        abort(404, description="Session not found")

    return ("", 204)
