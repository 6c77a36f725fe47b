"""
routes/users.py — The caller's stored location.

Endpoints (url_prefix=/api/v1/users):
  PATCH  /users/me/location  → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.cartpool.extensions import db
from backend.cartpool.middleware.auth_middleware import require_auth
from backend.cartpool.schemas.auth_schema import LocationSchema
from backend.cartpool.services import auth_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/me/location", methods=["PATCH"])
@require_auth
def update_location():
    data = LocationSchema().load(request.get_json(force=True) or {})
    result = auth_service.update_location(
        user_id=g.user_id,
        latitude=data["latitude"],
        longitude=data["longitude"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
