"""
tests/unit/test_validation_schemas.py — Unit tests for all marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Every schema rejects invalid input with the correct ValidationError
  - Field-level rules (type, length, enum, coordinate range, time format)
    are enforced by schemas
  - Rules that need the DB or the clock (item existence, item_count >= 1,
    start < end) are NOT tested here; they belong to services

No database and no Flask application context: schemas inherit from
marshmallow.Schema directly, so they can be instantiated anywhere.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from marshmallow import ValidationError

from backend.cartpool.errors import ErrorCode
from backend.cartpool.schemas.auth_schema import LocationSchema, LoginSchema, RegisterSchema
from backend.cartpool.schemas.chat_schema import SendMessageSchema
from backend.cartpool.schemas.party_schema import (
    CreatePartySchema,
    HandleJoinRequestSchema,
    UpdatePartySchema,
)
from backend.cartpool.services import time_window


def _party_payload(**overrides) -> dict:
    payload = {
        "market_name": "Fresh Mart",
        "market_address": "1 Main St",
        "latitude": "37.5665",
        "longitude": "126.978",
        "item_id": 1,
        "item_count": 3,
        "item_unit": "pack",
        "start_time": "03-14 18:00",
        "end_time": "03-14 19:30",
        "members_count": 2,
    }
    payload.update(overrides)
    return payload


# ═══════════════════════════════════════════════════════════════════════════
# RegisterSchema / LoginSchema / LocationSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def _load(self, data: dict):
        return RegisterSchema().load(data)

    def test_valid_payload_without_location(self):
        result = self._load({
            "email": "alice@example.com",
            "nickname": "alice",
            "password": "Secure123",
        })
        assert result["email"] == "alice@example.com"
        assert result["latitude"] is None
        assert result["longitude"] is None

    def test_location_is_quantized_decimal(self):
        result = self._load({
            "email": "alice@example.com",
            "nickname": "alice",
            "password": "Secure123",
            "latitude": "37.5",
            "longitude": 127,
        })
        assert result["latitude"] == Decimal("37.5000000")
        assert isinstance(result["longitude"], Decimal)

    def test_half_a_location_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({
                "email": "a@b.com",
                "nickname": "a",
                "password": "Secure123",
                "longitude": "127",
            })
        assert "latitude" in exc.value.messages

    def test_invalid_email_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"email": "not-an-email", "nickname": "a", "password": "Secure123"})
        assert "email" in exc.value.messages

    def test_blank_nickname_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"email": "a@b.com", "nickname": "   ", "password": "Secure123"})
        assert "nickname" in exc.value.messages

    def test_password_without_digit_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load({"email": "a@b.com", "nickname": "a", "password": "NoDigitsHere"})
        assert "password" in exc.value.messages


class TestLoginSchema:

    def test_missing_password_raises(self):
        with pytest.raises(ValidationError) as exc:
            LoginSchema().load({"email": "a@b.com"})
        assert "password" in exc.value.messages


class TestLocationSchema:

    def test_both_coordinates_required(self):
        with pytest.raises(ValidationError) as exc:
            LocationSchema().load({"latitude": "10"})
        assert "longitude" in exc.value.messages

    @pytest.mark.parametrize("field, value", [
        ("latitude", "-90.0001"),
        ("latitude", "90.5"),
        ("longitude", "180.1"),
        ("longitude", "-181"),
    ])
    def test_out_of_range_raises(self, field, value):
        data = {"latitude": "0", "longitude": "0", field: value}
        with pytest.raises(ValidationError) as exc:
            LocationSchema().load(data)
        assert field in exc.value.messages

    def test_boundaries_are_inclusive(self):
        result = LocationSchema().load({"latitude": "-90", "longitude": "180"})
        assert result["latitude"] == Decimal("-90")


# ═══════════════════════════════════════════════════════════════════════════
# CreatePartySchema / UpdatePartySchema
# ═══════════════════════════════════════════════════════════════════════════

class TestCreatePartySchema:

    def _load(self, data: dict):
        return CreatePartySchema().load(data)

    def test_valid_payload(self):
        result = self._load(_party_payload())
        assert result["item_count"] == 3
        assert result["start_time"] == "03-14 18:00"
        assert result["latitude"] == Decimal("37.5665000")

    def test_item_count_zero_passes_schema(self):
        """Reported by the service as INVALID_ITEM_COUNT (422), not here."""
        result = self._load(_party_payload(item_count=0))
        assert result["item_count"] == 0

    def test_members_count_zero_passes_schema(self):
        result = self._load(_party_payload(members_count=0))
        assert result["members_count"] == 0

    @pytest.mark.parametrize("raw", ["18:00", "2026-03-14 18:00", "03-32 10:00", "03-14 24:00", "soon"])
    def test_bad_time_format_uses_registered_code(self, raw):
        with pytest.raises(ValidationError) as exc:
            self._load(_party_payload(start_time=raw))
        assert exc.value.messages["start_time"] == [ErrorCode.INVALID_TIME_FORMAT]

    def test_feb_29_accepted_in_a_leap_year(self, monkeypatch):
        monkeypatch.setattr(time_window, "local_now", lambda: datetime(2028, 1, 1))
        result = self._load(_party_payload(start_time="02-29 10:00", end_time="02-29 11:00"))
        assert result["start_time"] == "02-29 10:00"

    def test_feb_29_rejected_outside_a_leap_year(self, monkeypatch):
        monkeypatch.setattr(time_window, "local_now", lambda: datetime(2027, 1, 1))
        with pytest.raises(ValidationError) as exc:
            self._load(_party_payload(start_time="02-29 10:00", end_time="02-29 11:00"))
        assert exc.value.messages["start_time"] == [ErrorCode.INVALID_TIME_FORMAT]

    def test_item_count_must_be_integer(self):
        with pytest.raises(ValidationError) as exc:
            self._load(_party_payload(item_count="3"))
        assert "item_count" in exc.value.messages

    def test_blank_market_name_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load(_party_payload(market_name="  "))
        assert "market_name" in exc.value.messages

    def test_missing_market_address_raises(self):
        payload = _party_payload()
        del payload["market_address"]
        with pytest.raises(ValidationError) as exc:
            self._load(payload)
        assert "market_address" in exc.value.messages

    def test_non_positive_item_id_raises(self):
        with pytest.raises(ValidationError) as exc:
            self._load(_party_payload(item_id=0))
        assert "item_id" in exc.value.messages


class TestUpdatePartySchema:

    def test_market_fields_are_not_part_of_update(self):
        payload = _party_payload()
        for key in ("market_name", "market_address", "latitude", "longitude"):
            payload.pop(key)
        result = UpdatePartySchema().load(payload)
        assert set(result) == {
            "item_id", "item_count", "item_unit", "start_time", "end_time", "members_count",
        }

    def test_missing_end_time_raises(self):
        payload = _party_payload()
        del payload["end_time"]
        with pytest.raises(ValidationError) as exc:
            UpdatePartySchema().load(payload, unknown="exclude")
        assert "end_time" in exc.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# HandleJoinRequestSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestHandleJoinRequestSchema:

    def test_empty_body_loads_to_nones(self):
        assert HandleJoinRequestSchema().load({}) == {"user_id": None, "invite_status": None}

    @pytest.mark.parametrize("status", ["PENDING", "ACCEPTED", "REJECTED"])
    def test_known_statuses_accepted(self, status):
        result = HandleJoinRequestSchema().load({"user_id": 3, "invite_status": status})
        assert result == {"user_id": 3, "invite_status": status}

    def test_unknown_status_raises(self):
        with pytest.raises(ValidationError) as exc:
            HandleJoinRequestSchema().load({"user_id": 3, "invite_status": "accepted"})
        assert "invite_status" in exc.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# SendMessageSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestSendMessageSchema:

    def test_message_type_defaults_to_chat(self):
        assert SendMessageSchema().load({"content": "hi"}) == {
            "content": "hi",
            "message_type": "CHAT",
        }

    def test_content_over_limit_raises(self):
        with pytest.raises(ValidationError) as exc:
            SendMessageSchema().load({"content": "x" * 1001})
        assert "content" in exc.value.messages
