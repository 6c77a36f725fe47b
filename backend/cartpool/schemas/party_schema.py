"""
schemas/party_schema.py — Marshmallow schemas for party endpoints.

Validation responsibility:
  - This file: field types, string lengths, coordinate ranges and the
    "MM-DD HH:MM" time format (INVALID_TIME_FORMAT).
  - services/party_service.py:
      - INVALID_ITEM_COUNT / INVALID_MEMBERS_COUNT (422) — item_count and
        members_count below 1 are accepted here on purpose so the service
        reports them with their own codes.
      - INVALID_TIME_RANGE (422) — needs both ends parsed against the clock.
      - ITEM_NOT_FOUND, PARTY_NOT_FOUND, PARTY_MEMBER_NOT_FOUND (404).

IMPORTANT: Inherits from marshmallow.Schema directly, never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

from backend.cartpool.errors import ErrorCode
from backend.cartpool.models.party_member import InviteStatus
from backend.cartpool.services import time_window


def _validate_party_time(value: str) -> None:
    """
    Accepts "MM-DD HH:MM" naming a real day in the current year, so "02-29"
    is rejected outside leap years.
    """
    try:
        time_window.parse_party_time(value, clock=time_window.local_now)
    except ValueError:
        raise ValidationError(ErrorCode.INVALID_TIME_FORMAT) from None


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class _PartyDetailsSchema(Schema):
    """Fields shared by create and update."""

    item_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="item_id must be a positive integer."),
    )

    # No range here: values below 1 surface as INVALID_ITEM_COUNT.
    item_count = fields.Int(required=True, strict=True)

    item_unit = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=20, error="item_unit must be between 1 and 20 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    start_time = fields.Str(required=True, validate=_validate_party_time)
    end_time = fields.Str(required=True, validate=_validate_party_time)

    # No range here: values below 1 surface as INVALID_MEMBERS_COUNT.
    members_count = fields.Int(required=True, strict=True)


class CreatePartySchema(_PartyDetailsSchema):
    """POST /parties"""

    market_name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="market_name must be between 1 and 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    market_address = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=255, error="market_address must be between 1 and 255 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    latitude = fields.Decimal(
        required=True,
        places=7,
        validate=validate.Range(min=-90, max=90, error="latitude must be between -90 and 90."),
    )

    longitude = fields.Decimal(
        required=True,
        places=7,
        validate=validate.Range(min=-180, max=180, error="longitude must be between -180 and 180."),
    )


class UpdatePartySchema(_PartyDetailsSchema):
    """PATCH /parties/:id — item, quantity, time window and member target."""


class HandleJoinRequestSchema(Schema):
    """
    PATCH /parties/:id/members

    Both fields are optional. Sent together they change one member's invite
    status; sent without either, the call only re-evaluates party status.
    """

    user_id = fields.Int(
        strict=True,
        allow_none=True,
        load_default=None,
        validate=validate.Range(min=1, error="user_id must be a positive integer."),
    )

    invite_status = fields.Str(
        allow_none=True,
        load_default=None,
        validate=validate.OneOf(
            [s.value for s in InviteStatus],
            error="invite_status must be one of PENDING, ACCEPTED, REJECTED.",
        ),
    )
