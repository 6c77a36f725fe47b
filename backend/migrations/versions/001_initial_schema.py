"""Initial schema — all tables, enums, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only: never edit this file once it has been applied to a database.
Schema changes go in a new migration.

Creation order:
  1. PostgreSQL enum types (must exist before tables that reference them)
  2. Tables in FK dependency order (users, items → parties → party_members,
     chat_messages)
  3. Indexes

ON DELETE policies:
  parties.creator_id        → RESTRICT  (cannot delete a user who leads parties)
  parties.item_id           → RESTRICT  (catalog rows in use stay)
  party_members.party_id    → CASCADE   (memberships owned by their party)
  party_members.user_id     → RESTRICT
  chat_messages.party_id    → CASCADE   (log owned by its party)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    """
    Apply the full initial schema.

    Enum types are created with op.execute() so the exact SQL is explicit;
    the columns reference them with postgresql.ENUM(create_type=False).
    """

    # ── Step 1: PostgreSQL enum types ─────────────────────────────────────

    op.execute("""
        CREATE TYPE party_status_enum AS ENUM (
            'RECRUITING',
            'JOINED',
            'DONE',
            'CANCELED'
        )
    """)

    op.execute("""
        CREATE TYPE party_member_role_enum AS ENUM ('LEADER', 'MEMBER')
    """)

    op.execute("""
        CREATE TYPE invite_status_enum AS ENUM ('PENDING', 'ACCEPTED', 'REJECTED')
    """)

    op.execute("""
        CREATE TYPE message_type_enum AS ENUM ('CHAT', 'JOIN', 'LEAVE')
    """)

    # ── Step 2: users ──────────────────────────────────────────────────────
    # latitude/longitude stay NULL until the user stores a location.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("nickname", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "LENGTH(TRIM(nickname)) > 0",
            name="ck_users_nickname_nonempty",
        ),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    # ── Step 3: items ──────────────────────────────────────────────────────

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
    )

    # ── Step 4: parties ────────────────────────────────────────────────────
    # start_time/end_time are local wall-clock times (no time zone).

    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("market_name", sa.String(100), nullable=False),
        sa.Column("market_address", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=False),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=False),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("items.id", ondelete="RESTRICT", name="fk_parties_item"),
            nullable=False,
        ),
        sa.Column("item_count", sa.Integer(), nullable=False),
        sa.Column("item_unit", sa.String(20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("members_count", sa.Integer(), nullable=False),
        sa.Column(
            "creator_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_parties_creator"),
            nullable=False,
        ),
        sa.Column(
            "party_status",
            postgresql.ENUM(
                "RECRUITING", "JOINED", "DONE", "CANCELED",
                name="party_status_enum",
                create_type=False,
            ),
            nullable=False,
            server_default="RECRUITING",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_parties"),
        sa.CheckConstraint("start_time < end_time", name="ck_parties_time_range"),
        sa.CheckConstraint("item_count >= 1", name="ck_parties_item_count_positive"),
        sa.CheckConstraint("members_count >= 1", name="ck_parties_members_count_positive"),
    )

    # ── Step 5: party_members ──────────────────────────────────────────────
    # UNIQUE(party_id, user_id): one membership per user per party.

    op.create_table(
        "party_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_party_members_user"),
            nullable=False,
        ),
        sa.Column(
            "party_id",
            sa.Integer(),
            sa.ForeignKey("parties.id", ondelete="CASCADE", name="fk_party_members_party"),
            nullable=False,
        ),
        sa.Column(
            "role",
            postgresql.ENUM(
                "LEADER", "MEMBER",
                name="party_member_role_enum",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "invite_status",
            postgresql.ENUM(
                "PENDING", "ACCEPTED", "REJECTED",
                name="invite_status_enum",
                create_type=False,
            ),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_party_members"),
        sa.UniqueConstraint("party_id", "user_id", name="uq_party_members_party_user"),
    )

    # ── Step 6: chat_messages ──────────────────────────────────────────────

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "party_id",
            sa.Integer(),
            sa.ForeignKey("parties.id", ondelete="CASCADE", name="fk_chat_messages_party"),
            nullable=False,
        ),
        sa.Column("sender", sa.String(255), nullable=False),
        sa.Column(
            "message_type",
            postgresql.ENUM(
                "CHAT", "JOIN", "LEAVE",
                name="message_type_enum",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_chat_messages"),
    )

    # ── Step 7: Indexes ────────────────────────────────────────────────────
    # Names match the ones SQLAlchemy derives from index=True on the models.

    op.create_index("ix_items_category", "items", ["category"])

    # Bounding-box prefilter of the nearby search.
    op.create_index("idx_parties_location", "parties", ["latitude", "longitude"])
    op.create_index("ix_parties_creator_id", "parties", ["creator_id"])
    op.create_index("ix_parties_party_status", "parties", ["party_status"])

    op.create_index("ix_party_members_party_id", "party_members", ["party_id"])
    op.create_index("ix_party_members_user_id", "party_members", ["user_id"])

    op.create_index("ix_chat_messages_party_id", "chat_messages", ["party_id"])


def downgrade() -> None:
    """Drop all objects created in upgrade(), in reverse dependency order."""

    op.drop_index("ix_chat_messages_party_id", table_name="chat_messages")
    op.drop_index("ix_party_members_user_id",  table_name="party_members")
    op.drop_index("ix_party_members_party_id", table_name="party_members")
    op.drop_index("ix_parties_party_status",   table_name="parties")
    op.drop_index("ix_parties_creator_id",     table_name="parties")
    op.drop_index("idx_parties_location",      table_name="parties")
    op.drop_index("ix_items_category",         table_name="items")

    op.drop_table("chat_messages")
    op.drop_table("party_members")
    op.drop_table("parties")
    op.drop_table("items")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS message_type_enum")
    op.execute("DROP TYPE IF EXISTS invite_status_enum")
    op.execute("DROP TYPE IF EXISTS party_member_role_enum")
    op.execute("DROP TYPE IF EXISTS party_status_enum")
