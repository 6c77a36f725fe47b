"""
models/party.py — Party table definition and lifecycle.

A party owns its memberships: deleting a party deletes its party_members
rows (ORM cascade plus ON DELETE CASCADE at the DB level).

Lifecycle:

    RECRUITING ──join──▶ JOINED ──complete──▶ DONE
         │                  │
         └──────cancel──────┴──────────────▶ CANCELED

complete and cancel are accepted from every status, including the terminal
ones. Only the join event is guarded. Whether item/time/member fields may
still change once a party is DONE or CANCELED is decided by party_service
before it calls update_details().
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.cartpool.errors import AppError, ErrorCode
from backend.cartpool.extensions import db


# ── Enum Definitions ───────────────────────────────────────────────────────

class PartyStatus(str, enum.Enum):
    RECRUITING = "RECRUITING"
    JOINED     = "JOINED"
    DONE       = "DONE"
    CANCELED   = "CANCELED"


class PartyEvent(str, enum.Enum):
    JOIN     = "join"
    COMPLETE = "complete"
    CANCEL   = "cancel"


TERMINAL_STATUSES = frozenset({PartyStatus.DONE, PartyStatus.CANCELED})


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Store enum values (e.g. 'RECRUITING'), not member names."""
    return [member.value for member in enum_cls]


# Every legal (status, event) pair. A pair missing from the table is an
# illegal transition.
_TRANSITIONS: dict[tuple[PartyStatus, PartyEvent], PartyStatus] = {
    (PartyStatus.RECRUITING, PartyEvent.JOIN): PartyStatus.JOINED,
    (PartyStatus.JOINED,     PartyEvent.JOIN): PartyStatus.JOINED,
    **{(status, PartyEvent.COMPLETE): PartyStatus.DONE for status in PartyStatus},
    **{(status, PartyEvent.CANCEL): PartyStatus.CANCELED for status in PartyStatus},
}


def next_status(current: PartyStatus, event: PartyEvent) -> PartyStatus:
    """
    Returns the status `event` leads to from `current`.

    Raises:
      AppError(INVALID_STATUS_TRANSITION, 409) — the pair is not in the table.
    """
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise AppError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"A {current.value} party cannot handle the '{event.value}' event.",
            409,
        ) from None


# ── Model ──────────────────────────────────────────────────────────────────

class Party(db.Model):
    __tablename__ = "parties"

    __table_args__ = (
        # Also validated in party_service (INVALID_TIME_RANGE, 422).
        CheckConstraint("start_time < end_time", name="ck_parties_time_range"),
        CheckConstraint("item_count >= 1", name="ck_parties_item_count_positive"),
        CheckConstraint("members_count >= 1", name="ck_parties_members_count_positive"),
        # Nearby search prefilters on a lat/lon bounding box.
        Index("idx_parties_location", "latitude", "longitude"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    market_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    market_address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    latitude: Mapped[Decimal] = mapped_column(
        Numeric(10, 7),
        nullable=False,
    )

    longitude: Mapped[Decimal] = mapped_column(
        Numeric(10, 7),
        nullable=False,
    )

    item_id: Mapped[int] = mapped_column(
        ForeignKey("items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    item_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    item_unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Local wall-clock times of the shopping trip.
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
    )

    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
    )

    # Target number of ACCEPTED members, leader included.
    members_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    creator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    party_status: Mapped[PartyStatus] = mapped_column(
        Enum(
            PartyStatus,
            name="party_status_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PartyStatus.RECRUITING,
        server_default=PartyStatus.RECRUITING.value,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    item: Mapped["Item"] = relationship("Item")  # noqa: F821

    creator: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[creator_id],
    )

    members: Mapped[list["PartyMember"]] = relationship(  # noqa: F821
        "PartyMember",
        back_populates="party",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PartyMember.id",
    )

    # ── Lifecycle ──────────────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return self.party_status in TERMINAL_STATUSES

    def update_details(
            self,
            item,
            item_count: int,
            item_unit: str,
            start_time: datetime,
            end_time: datetime,
            members_count: int,
    ) -> None:
        """Replaces the mutable trip fields. start_time must precede end_time."""
        if start_time >= end_time:
            raise AppError(
                ErrorCode.INVALID_TIME_RANGE,
                "The start time must be earlier than the end time.",
                422,
                field="start_time",
            )
        self.item = item
        self.item_id = item.id
        self.item_count = item_count
        self.item_unit = item_unit
        self.start_time = start_time
        self.end_time = end_time
        self.members_count = members_count

    def transition_to_joined(self) -> None:
        self.party_status = next_status(self.party_status, PartyEvent.JOIN)

    def complete(self) -> None:
        self.party_status = next_status(self.party_status, PartyEvent.COMPLETE)

    def cancel(self) -> None:
        self.party_status = next_status(self.party_status, PartyEvent.CANCEL)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Party id={self.id} "
            f"market={self.market_name!r} "
            f"status={self.party_status}>"
        )
