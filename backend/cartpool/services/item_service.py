"""
services/item_service.py — Read-only item catalog lookups.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.cartpool.errors import AppError, ErrorCode
from backend.cartpool.models.item import Item


def _build_item_dict(item: Item) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "category": item.category,
    }


def list_items(session: Session, category: str | None = None) -> list[dict]:
    """All items, optionally limited to one category, ordered by id."""
    stmt = select(Item).order_by(Item.id.asc())
    if category is not None:
        stmt = stmt.where(Item.category == category)
    return [_build_item_dict(i) for i in session.execute(stmt).scalars().all()]


def get_item(item_id: int, session: Session) -> dict:
    item = session.get(Item, item_id)
    if item is None:
        raise AppError(
            ErrorCode.ITEM_NOT_FOUND,
            f"Item {item_id} does not exist.",
            404,
        )
    return _build_item_dict(item)
