"""
errors.py — AppError and the registry of error codes the API can return.

Business failures are raised as AppError(code, message, http_status, field)
and rendered by the global handler in cartpool/__init__.py. Codes are part
of the public contract; messages are prose and may be reworded.
"""

from __future__ import annotations


class AppError(Exception):
    """A failure with a stable code, a readable message and an HTTP status."""

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.field = field

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.field is not None:
            error["field"] = self.field
        return {"error": error}

    def __repr__(self) -> str:
        return f"AppError({self.code!r}, {self.http_status}, field={self.field!r})"


class ErrorCode:
    # 400: request body failed schema validation
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"

    # 422: well-formed but rejected
    INVALID_ITEM_COUNT = "INVALID_ITEM_COUNT"
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
    INVALID_MEMBERS_COUNT = "INVALID_MEMBERS_COUNT"
    LOCATION_NOT_SET = "LOCATION_NOT_SET"

    # 404
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PARTY_NOT_FOUND = "PARTY_NOT_FOUND"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    PARTY_MEMBER_NOT_FOUND = "PARTY_MEMBER_NOT_FOUND"

    # 409: the party or account is in the wrong state
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    PARTY_NOT_DONE = "PARTY_NOT_DONE"
    PARTY_CLOSED = "PARTY_CLOSED"
    PARTY_NOT_RECRUITING = "PARTY_NOT_RECRUITING"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # 401 means unauthenticated, 403 means authenticated but not allowed.
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    NOT_PARTY_LEADER = "NOT_PARTY_LEADER"
    FORBIDDEN = "FORBIDDEN"

    # 500
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @classmethod
    def is_registered(cls, value) -> bool:
        return isinstance(value, str) and value.isupper() and getattr(cls, value, None) == value
