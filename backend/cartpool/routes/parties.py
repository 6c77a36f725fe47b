"""
routes/parties.py — Party and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.
  - Each request is one transaction: the service only flushes, the route
    commits once at the end, and anything raised before the commit leaves
    the session to be rolled back at teardown.

Endpoints (url_prefix=/api/v1/parties):
  POST   /parties                       → 201  create party (caller leads)
  GET    /parties/mine                  → 200  parties the caller leads or joined
  GET    /parties/nearby                → 200  open parties near the caller
  GET    /parties/:id                   → 200  party details + members
  PATCH  /parties/:id                   → 200  update details (leader only)
  POST   /parties/:id/join              → 201  request to join
  PATCH  /parties/:id/members           → 200  accept/reject a join request (leader only)
  POST   /parties/:id/complete          → 200  mark DONE (leader only)
  POST   /parties/:id/cancel            → 200  mark CANCELED (leader only)
  GET    /parties/:id/members/closed    → 200  accepted members of a DONE party (leader only)
  GET    /parties/:id/membership        → 200  is the caller in this party?
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.cartpool.extensions import db
from backend.cartpool.middleware.auth_middleware import require_auth
from backend.cartpool.schemas.party_schema import (
    CreatePartySchema,
    HandleJoinRequestSchema,
    UpdatePartySchema,
)
from backend.cartpool.services import party_service

parties_bp = Blueprint("parties", __name__)


@parties_bp.route("/", methods=["POST"])
@require_auth
def create_party():
    """POST /parties — Create a party. Caller becomes its leader."""
    data = CreatePartySchema().load(request.get_json(force=True) or {})
    result = party_service.create_party(
        data=data,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@parties_bp.route("/mine", methods=["GET"])
@require_auth
def my_parties():
    """GET /parties/mine — Parties the caller created or holds a membership in."""
    result = party_service.get_my_parties(
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/nearby", methods=["GET"])
@require_auth
def nearby_parties():
    """GET /parties/nearby — Parties within NEARBY_RADIUS_KM of the caller."""
    result = party_service.get_nearby_parties(
        caller_id=g.user_id,
        session=db.session,
        radius_km=current_app.config["NEARBY_RADIUS_KM"],
        include_terminal=current_app.config["NEARBY_INCLUDE_TERMINAL"],
    )
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>", methods=["GET"])
@require_auth
def get_party(party_id: int):
    result = party_service.get_party(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>", methods=["PATCH"])
@require_auth
def update_party(party_id: int):
    """PATCH /parties/:id — Replace item, quantity, time window and member target."""
    data = UpdatePartySchema().load(request.get_json(force=True) or {})
    result = party_service.update_party(
        party_id=party_id,
        data=data,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>/join", methods=["POST"])
@require_auth
def request_join(party_id: int):
    """POST /parties/:id/join — Ask to join; the membership starts PENDING."""
    result = party_service.request_join(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@parties_bp.route("/<int:party_id>/members", methods=["PATCH"])
@require_auth
def handle_join_request(party_id: int):
    """PATCH /parties/:id/members — Leader sets a member's invite status."""
    data = HandleJoinRequestSchema().load(request.get_json(silent=True) or {})
    result = party_service.handle_join_request(
        party_id=party_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>/complete", methods=["POST"])
@require_auth
def complete_party(party_id: int):
    result = party_service.complete_party(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>/cancel", methods=["POST"])
@require_auth
def cancel_party(party_id: int):
    result = party_service.cancel_party(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>/members/closed", methods=["GET"])
@require_auth
def members_after_closed(party_id: int):
    """GET /parties/:id/members/closed — Accepted members once the party is DONE."""
    result = party_service.get_members_after_party_closed(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@parties_bp.route("/<int:party_id>/membership", methods=["GET"])
@require_auth
def membership(party_id: int):
    """GET /parties/:id/membership — {"is_member": bool} for the caller."""
    is_member = party_service.is_user_in_party(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": {
            "party_id": party_id,
            "user_id": g.user_id,
            "is_member": is_member,
        },
        "warnings": [],
    }), 200
