"""
routes/chat.py — Party chat log.

Endpoints (url_prefix=/api/v1/parties):
  POST   /parties/:id/chat   → 201  append a message
  GET    /parties/:id/chat   → 200  full history, oldest first
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.cartpool.extensions import db
from backend.cartpool.middleware.auth_middleware import require_auth
from backend.cartpool.schemas.chat_schema import SendMessageSchema
from backend.cartpool.services import chat_service

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/<int:party_id>/chat", methods=["POST"])
@require_auth
def send_message(party_id: int):
    data = SendMessageSchema().load(request.get_json(force=True) or {})
    result = chat_service.send_message(
        party_id=party_id,
        sender_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@chat_bp.route("/<int:party_id>/chat", methods=["GET"])
@require_auth
def chat_history(party_id: int):
    result = chat_service.get_chat_history(
        party_id=party_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
