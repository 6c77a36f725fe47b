"""
services/geo_query.py — Radius search over stored party coordinates.

Two passes:
  1. SQL: a latitude/longitude bounding box around the centre, plus the
     status filter. Plain comparisons only, so it runs on any dialect and
     uses idx_parties_location.
  2. Python: exact great-circle (haversine) distance; rows outside the
     radius are dropped and the rest sorted nearest first.

The box is a superset of the circle, so pass 2 never misses a party that
pass 1 dropped.
"""

from __future__ import annotations

import math
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.cartpool.models.party import Party, PartyStatus, TERMINAL_STATUSES
from backend.cartpool.services.time_window import format_party_time

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 10.0

# Kilometres per degree of latitude (and of longitude at the equator).
_KM_PER_DEGREE = math.pi * EARTH_RADIUS_KM / 180.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(
        dlambda / 2
    ) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(
        latitude: float,
        longitude: float,
        radius_km: float,
) -> tuple[float, float, float, float]:
    """
    Returns (min_lat, max_lat, min_lon, max_lon) enclosing the circle.

    The longitude span is the one of the circle's widest point, which lies
    slightly poleward of the centre. Near the poles it degenerates and the
    full range is used.
    """
    lat_delta = radius_km / _KM_PER_DEGREE
    min_lat = max(latitude - lat_delta, -90.0)
    max_lat = min(latitude + lat_delta, 90.0)

    if max_lat >= 90.0 or min_lat <= -90.0:
        return min_lat, max_lat, -180.0, 180.0

    ratio = math.sin(radius_km / EARTH_RADIUS_KM) / math.cos(math.radians(latitude))
    if ratio >= 1.0:
        return min_lat, max_lat, -180.0, 180.0

    lon_delta = math.degrees(math.asin(ratio))
    return min_lat, max_lat, longitude - lon_delta, longitude + lon_delta


def _build_nearby_dict(party: Party, distance_km: float) -> dict:
    return {
        "id": party.id,
        "market_name": party.market_name,
        "market_address": party.market_address,
        "latitude": party.latitude,
        "longitude": party.longitude,
        "item_id": party.item_id,
        "category": party.item.category if party.item is not None else None,
        "item_count": party.item_count,
        "item_unit": party.item_unit,
        "start_time": format_party_time(party.start_time),
        "end_time": format_party_time(party.end_time),
        "members_count": party.members_count,
        "party_status": party.party_status.value,
        "distance_km": round(distance_km, 2),
    }


def find_nearby(
        latitude: Decimal | float,
        longitude: Decimal | float,
        session: Session,
        radius_km: float = DEFAULT_RADIUS_KM,
        include_terminal: bool = False,
) -> list[dict]:
    """
    Returns parties within `radius_km` of (latitude, longitude), nearest first.

    include_terminal=False keeps only RECRUITING and JOINED parties.
    """
    lat = float(latitude)
    lon = float(longitude)
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius_km)

    stmt = select(Party).where(
        Party.latitude.between(Decimal(str(min_lat)), Decimal(str(max_lat))),
        Party.longitude.between(Decimal(str(min_lon)), Decimal(str(max_lon))),
    )
    if not include_terminal:
        open_statuses = [s for s in PartyStatus if s not in TERMINAL_STATUSES]
        stmt = stmt.where(Party.party_status.in_(open_statuses))

    candidates = session.execute(stmt).scalars().all()

    results: list[tuple[float, Party]] = []
    for party in candidates:
        distance = haversine_km(lat, lon, float(party.latitude), float(party.longitude))
        if distance <= radius_km:
            results.append((distance, party))

    results.sort(key=lambda pair: (pair[0], pair[1].id))
    return [_build_nearby_dict(party, distance) for distance, party in results]
