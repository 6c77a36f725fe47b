"""
schemas/chat_schema.py — Marshmallow schema for party chat messages.

The sender is never read from the body; chat_service records the
authenticated caller's email.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from backend.cartpool.models.chat_message import MessageType


class SendMessageSchema(Schema):
    """POST /parties/:id/chat"""

    message_type = fields.Str(
        load_default=MessageType.CHAT.value,
        validate=validate.OneOf(
            [t.value for t in MessageType],
            error="message_type must be one of CHAT, JOIN, LEAVE.",
        ),
    )

    content = fields.Str(
        required=True,
        validate=validate.Length(max=1000, error="content must be at most 1000 characters."),
    )

    @validates("content")
    def validate_content(self, value: str, **kwargs) -> None:
        if not value.strip():
            raise ValidationError("This field must not be blank or contain only whitespace.")
