"""
routes/items.py — Read-only item catalog.

Endpoints (url_prefix=/api/v1/items):
  GET    /items          → 200  (?category=<name> filters)
  GET    /items/:id      → 200
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backend.cartpool.extensions import db
from backend.cartpool.middleware.auth_middleware import require_auth
from backend.cartpool.services import item_service

items_bp = Blueprint("items", __name__)


@items_bp.route("/", methods=["GET"])
@require_auth
def list_items():
    result = item_service.list_items(
        session=db.session,
        category=request.args.get("category"),
    )
    return jsonify({"data": result, "warnings": []}), 200


@items_bp.route("/<int:item_id>", methods=["GET"])
@require_auth
def get_item(item_id: int):
    result = item_service.get_item(item_id=item_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200
