"""
models/chat_message.py — Persisted chat log of a party.

Append-only: rows are inserted by chat_service and never updated.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.cartpool.extensions import db


class MessageType(str, enum.Enum):
    CHAT  = "CHAT"
    JOIN  = "JOIN"
    LEAVE = "LEAVE"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ChatMessage(db.Model):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(primary_key=True)

    party_id: Mapped[int] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Sender's email, copied at send time.
    sender: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    message_type: Mapped[MessageType] = mapped_column(
        Enum(
            MessageType,
            name="message_type_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=MessageType.CHAT,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ChatMessage id={self.id} "
            f"party_id={self.party_id} "
            f"type={self.message_type}>"
        )
