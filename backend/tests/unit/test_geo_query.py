"""
Unit tests for services/geo_query.py.

Distance math is pure; find_nearby runs against a mocked session whose
query returns the bounding-box candidates.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import sqlite

from backend.cartpool.models.item import Item
from backend.cartpool.models.party import Party, PartyStatus
from backend.cartpool.models.party_member import PartyMember  # noqa: F401  (mapper resolution)
from backend.cartpool.models.user import User  # noqa: F401  (mapper resolution)
from backend.cartpool.services import geo_query

SEOUL = (37.5665, 126.9780)
BUSAN = (35.1796, 129.0756)


def _party(party_id: int, lat: str, lon: str, status=PartyStatus.RECRUITING) -> Party:
    return Party(
        id=party_id,
        market_name=f"Mart {party_id}",
        market_address="somewhere",
        latitude=Decimal(lat),
        longitude=Decimal(lon),
        item=Item(id=1, name="Eggs", category="grocery"),
        item_id=1,
        item_count=1,
        item_unit="pack",
        start_time=datetime(2026, 3, 14, 18, 0),
        end_time=datetime(2026, 3, 14, 19, 0),
        members_count=2,
        creator_id=1,
        party_status=status,
    )


# ═══════════════════════════════════════════════════════════════════════════
# haversine_km
# ═══════════════════════════════════════════════════════════════════════════

def test_haversine_same_point_is_zero():
    assert geo_query.haversine_km(*SEOUL, *SEOUL) == 0.0


def test_haversine_seoul_busan():
    assert geo_query.haversine_km(*SEOUL, *BUSAN) == pytest.approx(325.0, abs=5.0)


def test_haversine_is_symmetric():
    assert geo_query.haversine_km(*SEOUL, *BUSAN) == pytest.approx(
        geo_query.haversine_km(*BUSAN, *SEOUL)
    )


def test_haversine_one_degree_of_latitude():
    assert geo_query.haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


def test_haversine_grows_with_distance():
    near = geo_query.haversine_km(37.0, 127.0, 37.01, 127.0)
    farther = geo_query.haversine_km(37.0, 127.0, 37.02, 127.0)
    assert near < farther


# ═══════════════════════════════════════════════════════════════════════════
# bounding_box
# ═══════════════════════════════════════════════════════════════════════════

def test_bounding_box_contains_the_circle():
    lat, lon = SEOUL
    min_lat, max_lat, min_lon, max_lon = geo_query.bounding_box(lat, lon, 10.0)

    # The northern edge is exactly one radius away; the eastern edge at the
    # centre's latitude is at least that far.
    assert geo_query.haversine_km(lat, lon, max_lat, lon) == pytest.approx(10.0, rel=1e-6)
    assert geo_query.haversine_km(lat, lon, lat, max_lon) >= 10.0 - 1e-9
    assert min_lat < lat < max_lat
    assert min_lon < lon < max_lon


def test_bounding_box_near_pole_spans_all_longitudes():
    min_lat, max_lat, min_lon, max_lon = geo_query.bounding_box(89.99, 10.0, 10.0)
    assert max_lat == 90.0
    assert (min_lon, max_lon) == (-180.0, 180.0)


# ═══════════════════════════════════════════════════════════════════════════
# find_nearby
# ═══════════════════════════════════════════════════════════════════════════

def _session_with(rows: list) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.scalars.return_value.all.return_value = rows
    return session


def test_find_nearby_drops_box_corners_and_sorts_by_distance():
    rows = [
        _party(1, "37.5700000", "126.9820000"),   # ~0.5 km
        _party(2, "37.5665000", "126.9780000"),   # 0 km
        _party(3, "37.6400000", "127.0600000"),   # inside the box, ~11 km away
    ]

    result = geo_query.find_nearby(*SEOUL, session=_session_with(rows), radius_km=10.0)

    assert [p["id"] for p in result] == [2, 1]
    assert result[0]["distance_km"] == 0.0
    assert result[1]["distance_km"] == pytest.approx(0.53, abs=0.05)


def test_find_nearby_breaks_distance_ties_by_id():
    rows = [_party(7, "37.5665000", "126.9780000"), _party(3, "37.5665000", "126.9780000")]

    result = geo_query.find_nearby(*SEOUL, session=_session_with(rows))

    assert [p["id"] for p in result] == [3, 7]


def test_find_nearby_accepts_decimal_centre():
    rows = [_party(1, "37.5665000", "126.9780000")]

    result = geo_query.find_nearby(
        Decimal("37.5665000"), Decimal("126.9780000"), session=_session_with(rows),
    )

    assert result[0]["category"] == "grocery"
    assert result[0]["start_time"] == "03-14 18:00"


def _compiled_query(session: MagicMock) -> str:
    stmt = session.execute.call_args[0][0]
    return str(stmt.compile(dialect=sqlite.dialect()))


def test_find_nearby_filters_terminal_statuses_by_default():
    session = _session_with([])

    geo_query.find_nearby(*SEOUL, session=session)

    assert "party_status IN" in _compiled_query(session)


def test_find_nearby_include_terminal_skips_status_filter():
    session = _session_with([])

    geo_query.find_nearby(*SEOUL, session=session, include_terminal=True)

    assert "party_status" not in _compiled_query(session).split("WHERE", 1)[1]
