"""
schemas/auth_schema.py — Marshmallow schemas for authentication and the
stored user location.

Validation responsibility:
  - This file: field types, lengths, formats, coordinate ranges.
  - services/auth_service.py: DUPLICATE_EMAIL (requires a DB lookup).

IMPORTANT: All schemas inherit from marshmallow.Schema directly, never
ma.Schema (see extensions.py).
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates, validates_schema


def _coordinate_field(limit: int, name: str, required: bool) -> fields.Decimal:
    """Decimal coordinate with 7 decimal places, within [-limit, limit]."""
    optional = {} if required else {"allow_none": True, "load_default": None}
    return fields.Decimal(
        required=required,
        places=7,
        validate=validate.Range(
            min=-limit,
            max=limit,
            error=f"{name} must be between -{limit} and {limit}.",
        ),
        **optional,
    )


def _latitude_field(required: bool) -> fields.Decimal:
    return _coordinate_field(90, "latitude", required)


def _longitude_field(required: bool) -> fields.Decimal:
    return _coordinate_field(180, "longitude", required)


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      email    : valid email format, max 255 chars
      nickname : 1–50 chars, not blank
      password : min 8 chars, at least one letter and one digit
      latitude / longitude : optional, but both or neither
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    nickname = fields.Str(
        required=True,
        validate=validate.Length(
            min=1,
            max=50,
            error="Nickname must be between 1 and 50 characters.",
        ),
    )

    password = fields.Str(required=True, load_only=True)

    latitude = _latitude_field(required=False)
    longitude = _longitude_field(required=False)

    @validates("nickname")
    def validate_nickname(self, value: str, **kwargs) -> None:
        if not value.strip():
            raise ValidationError("This field must not be blank or contain only whitespace.")

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")

    @validates_schema
    def validate_location_pair(self, data: dict, **kwargs) -> None:
        has_lat = data.get("latitude") is not None
        has_lon = data.get("longitude") is not None
        if has_lat != has_lon:
            raise ValidationError(
                "latitude and longitude must be given together.",
                field_name="latitude" if not has_lat else "longitude",
            )


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py
    (INVALID_CREDENTIALS, 401).
    """

    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class LocationSchema(Schema):
    """PATCH /users/me/location"""

    latitude = _latitude_field(required=True)
    longitude = _longitude_field(required=True)
