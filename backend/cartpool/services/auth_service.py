"""
services/auth_service.py — Accounts, credentials and access tokens.

Parties only need a stable user id, a contact email for chat and the point
nearby search is centred on; this module owns all three.

Tokens are HS256 JWTs with the user id in "sub". There are no refresh
tokens: a client logs in again when the access token expires. Passwords
are stored as bcrypt hashes and never logged.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from decimal import Decimal

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.cartpool.errors import AppError, ErrorCode
from backend.cartpool.models.user import User

logger = logging.getLogger(__name__)


def _issue_token(user_id: int) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        # Distinguishes two logins within the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    return bcrypt.hashpw(password.encode(), salt).decode()


def _password_matches(user: User, password: str) -> bool:
    return bcrypt.checkpw(password.encode(), user.password_hash.encode())


def _find_by_email(email: str, session: Session) -> User | None:
    return session.execute(select(User).where(User.email == email)).scalar_one_or_none()


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "nickname": user.nickname,
        "latitude": user.latitude,
        "longitude": user.longitude,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _with_token(user: User) -> dict:
    return {"user": serialize_user(user), "access_token": _issue_token(user.id)}


def _load_user(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.", 404)
    return user


def register_user(
        email: str,
        nickname: str,
        password: str,
        session: Session,
        latitude: Decimal | None = None,
        longitude: Decimal | None = None,
) -> dict:
    """
    Creates an account and signs the first access token.

    Returns: {"user": {...}, "access_token": "..."}

    Raises:
      AppError(DUPLICATE_EMAIL, 409, field="email")
    """
    if _find_by_email(email, session) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    user = User(
        email=email,
        nickname=nickname,
        password_hash=_hash_password(password),
        latitude=latitude,
        longitude=longitude,
    )
    session.add(user)
    session.flush()  # the token needs user.id

    logger.info("Registered user %s", user.id)
    return _with_token(user)


def login_user(email: str, password: str, session: Session) -> dict:
    """
    Unknown emails and wrong passwords fail identically (INVALID_CREDENTIALS,
    401), so the endpoint cannot reveal which emails exist.
    """
    user = _find_by_email(email, session)
    if user is None or not _password_matches(user, password):
        raise AppError(ErrorCode.INVALID_CREDENTIALS, "The email or password is incorrect.", 401)
    return _with_token(user)


def get_current_user(user_id: int, session: Session) -> dict:
    return serialize_user(_load_user(user_id, session))


def update_location(
        user_id: int,
        latitude: Decimal,
        longitude: Decimal,
        session: Session,
) -> dict:
    """Replaces the point GET /parties/nearby searches around."""
    user = _load_user(user_id, session)
    user.latitude, user.longitude = latitude, longitude
    session.flush()
    return serialize_user(user)
