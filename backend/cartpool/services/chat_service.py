"""
services/chat_service.py — Party chat log.

A thin append/read layer over chat_messages: no delivery, no fan-out.
Only users holding a membership in the party (any role, any invite status)
may write to or read its log.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; services only flush.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.cartpool.errors import AppError, ErrorCode
from backend.cartpool.models.chat_message import ChatMessage, MessageType
from backend.cartpool.models.party import Party
from backend.cartpool.models.party_member import PartyMember
from backend.cartpool.models.user import User


def _require_party_member(party_id: int, user_id: int, session: Session) -> None:
    """
    Raises PARTY_NOT_FOUND (404) for an unknown party and FORBIDDEN (403)
    if user_id holds no membership in it.
    """
    if session.get(Party, party_id) is None:
        raise AppError(
            ErrorCode.PARTY_NOT_FOUND,
            f"Party {party_id} does not exist.",
            404,
        )

    membership = session.execute(
        select(PartyMember).where(
            PartyMember.party_id == party_id,
            PartyMember.user_id == user_id,
        )
    ).scalar_one_or_none()

    if membership is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of party {party_id}.",
            403,
        )


def _build_message_dict(message: ChatMessage) -> dict:
    return {
        "id": message.id,
        "party_id": message.party_id,
        "sender": message.sender,
        "message_type": message.message_type.value,
        "content": message.content,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def send_message(
        party_id: int,
        sender_id: int,
        data: dict,
        session: Session,
) -> dict:
    """
    Appends a message to the party's log. The sender is recorded as the
    caller's email, whatever the client claims.
    """
    _require_party_member(party_id, sender_id, session)
    sender = session.get(User, sender_id)

    message = ChatMessage(
        party_id=party_id,
        sender=sender.email,
        message_type=MessageType(data.get("message_type", MessageType.CHAT.value)),
        content=data["content"],
    )
    session.add(message)
    session.flush()
    return _build_message_dict(message)


def get_chat_history(party_id: int, caller_id: int, session: Session) -> list[dict]:
    """Every message of the party, oldest first."""
    _require_party_member(party_id, caller_id, session)

    stmt = (
        select(ChatMessage)
        .where(ChatMessage.party_id == party_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )
    return [_build_message_dict(m) for m in session.execute(stmt).scalars().all()]
