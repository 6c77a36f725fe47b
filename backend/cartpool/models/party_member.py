"""
models/party_member.py — One user's role and invite status within one party.

Rows are created in two places only:
  - party creation: the creator, role LEADER, invite status ACCEPTED
  - join request:   the requester, role MEMBER, invite status PENDING

The role never changes after creation. The invite status changes only
through update_invite_status(), which accepts any value; which changes are
allowed is up to party_service.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.cartpool.extensions import db


class PartyMemberRole(str, enum.Enum):
    LEADER = "LEADER"
    MEMBER = "MEMBER"


class InviteStatus(str, enum.Enum):
    PENDING  = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class PartyMember(db.Model):
    __tablename__ = "party_members"

    __table_args__ = (
        # A user holds at most one membership per party.
        UniqueConstraint("party_id", "user_id", name="uq_party_members_party_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # ON DELETE CASCADE: memberships are destroyed with their party.
    party_id: Mapped[int] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[PartyMemberRole] = mapped_column(
        Enum(
            PartyMemberRole,
            name="party_member_role_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    invite_status: Mapped[InviteStatus] = mapped_column(
        Enum(
            InviteStatus,
            name="invite_status_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=InviteStatus.PENDING,
        server_default=InviteStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="party_memberships",
    )

    party: Mapped["Party"] = relationship(  # noqa: F821
        "Party",
        back_populates="members",
    )

    def update_invite_status(self, new_status: InviteStatus) -> None:
        self.invite_status = new_status

    @property
    def is_accepted(self) -> bool:
        return self.invite_status == InviteStatus.ACCEPTED

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PartyMember id={self.id} "
            f"party_id={self.party_id} "
            f"user_id={self.user_id} "
            f"role={self.role} "
            f"invite_status={self.invite_status}>"
        )
