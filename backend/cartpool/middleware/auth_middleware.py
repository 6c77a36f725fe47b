"""
middleware/auth_middleware.py — Bearer-token authentication for routes.

@require_auth verifies the HS256 access token issued by auth_service and
stores the caller's id in flask.g.user_id. Whether that caller may act on a
given party is decided later, in the services.

Failures, all 401:
  TOKEN_MISSING   no Authorization header
  TOKEN_INVALID   not "Bearer <jwt>", bad signature, or unusable "sub"
  TOKEN_EXPIRED   signature fine, "exp" in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from backend.cartpool.errors import AppError, ErrorCode


def require_auth(view: Callable) -> Callable:
    """
    Usage:
        @parties_bp.route("/mine", methods=["GET"])
        @require_auth
        def my_parties():
            caller_id = g.user_id
    """
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        g.user_id = _caller_id(_decode(_bearer_token()))
        return view(*args, **kwargs)

    return wrapper


def _unauthorized(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "").strip()
    if not header:
        raise _unauthorized(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Send 'Authorization: Bearer <token>'.",
        )

    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must look like 'Bearer <token>'.",
        )
    return token


def _decode(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again via POST /auth/login.",
        )
    except jwt.InvalidTokenError:
        raise _unauthorized(ErrorCode.TOKEN_INVALID, "The access token is invalid.")


def _caller_id(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "The access token does not carry a usable 'sub' claim.",
        )
