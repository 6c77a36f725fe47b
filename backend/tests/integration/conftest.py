"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against a real SQLAlchemy database: in-memory SQLite by
    default, or whatever TEST_DATABASE_URL points at (e.g. PostgreSQL).
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start; enum
    types are created by SQLAlchemy on PostgreSQL and become CHECKed
    VARCHARs on SQLite.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)     → dict with user + access_token
  - auth_headers(token)       → {"Authorization": "Bearer <token>"}
  - make_item(app, ...)       → item id (catalog rows are seeded directly)
  - make_party(client, ...)   → HTTP response
  - request_join(client, ...) → HTTP response
  - decide(client, ...)       → HTTP response of PATCH /parties/:id/members

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from backend.cartpool import create_app
from backend.cartpool.extensions import db as _db

# Seoul City Hall; the default party location and the default user location.
HOME_LAT = "37.5665000"
HOME_LON = "126.9780000"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the whole session
    and creates every table. Tables are dropped at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests, children before parents.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM chat_messages"))
            conn.execute(text("DELETE FROM party_members"))
            conn.execute(text("DELETE FROM parties"))
            conn.execute(text("DELETE FROM items"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def item_id(app) -> int:
    """A single catalog item most party tests can use."""
    return make_item(app)


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    nickname: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    latitude: str | None = HOME_LAT,
    longitude: str | None = HOME_LON,
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token": "..."}
    """
    if email is None:
        email = f"{nickname}@test.com"
    payload = {"email": email, "nickname": nickname, "password": password}
    if latitude is not None:
        payload["latitude"] = latitude
    if longitude is not None:
        payload["longitude"] = longitude

    resp = client.post("/api/v1/auth/register", json=payload)
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_item(app, name: str = "Eggs", category: str = "grocery") -> int:
    """Inserts an item into the catalog and returns its id."""
    from backend.cartpool.models.item import Item

    with app.app_context():
        item = Item(name=name, category=category)
        _db.session.add(item)
        _db.session.commit()
        return item.id


def party_payload(item_id: int, **overrides) -> dict:
    """A valid POST /parties body; keyword arguments replace fields."""
    payload = {
        "market_name": "Fresh Mart",
        "market_address": "1 Sejong-daero, Jung-gu",
        "latitude": HOME_LAT,
        "longitude": HOME_LON,
        "item_id": item_id,
        "item_count": 3,
        "item_unit": "pack",
        "start_time": "03-14 18:00",
        "end_time": "03-14 19:30",
        "members_count": 2,
    }
    payload.update(overrides)
    return payload


def make_party(client, token: str, item_id: int, **overrides):
    """Creates a party and returns the HTTP response."""
    return client.post(
        "/api/v1/parties/",
        json=party_payload(item_id, **overrides),
        headers=auth_headers(token),
    )


def request_join(client, token: str, party_id: int):
    """Files a join request as the token owner. Returns the HTTP response."""
    return client.post(
        f"/api/v1/parties/{party_id}/join",
        headers=auth_headers(token),
    )


def decide(client, token: str, party_id: int, user_id: int | None, invite_status: str | None):
    """Leader decision on a join request. Returns the HTTP response."""
    body = {}
    if user_id is not None:
        body["user_id"] = user_id
    if invite_status is not None:
        body["invite_status"] = invite_status
    return client.patch(
        f"/api/v1/parties/{party_id}/members",
        json=body,
        headers=auth_headers(token),
    )
