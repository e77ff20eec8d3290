"""initial dealroom schema

Revision ID: 5c1d2e7a9b10
Revises:
Create Date: 2026-10-19 09:12:44.318402

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1d2e7a9b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
# Partial unique indexes keep one open conversation per deal.
_OPEN_ONLY = sa.text("flow_state NOT IN ('closed', 'connection_rejected', 'negotiation_rejected')")


def upgrade() -> None:
    """Create conversation, message, ledger and supporting tables."""
    op.create_table(
        "conversation",
        sa.Column("id", _ID, nullable=False),
        sa.Column("brand_owner_id", sa.BigInteger(), nullable=False),
        sa.Column("influencer_id", sa.BigInteger(), nullable=False),
        sa.Column("campaign_id", sa.BigInteger(), nullable=True),
        sa.Column("bid_id", sa.BigInteger(), nullable=True),
        sa.Column("flow_state", sa.String(length=40), nullable=False),
        sa.Column("awaiting_role", sa.String(length=20), nullable=True),
        sa.Column("negotiation_round", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_negotiation_rounds", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("negotiation_history", sa.JSON(), nullable=False),
        sa.Column("flow_data", sa.JSON(), nullable=False),
        sa.Column("revision_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(campaign_id IS NULL) <> (bid_id IS NULL)",
            name="ck_conversation_single_source",
        ),
        sa.CheckConstraint("negotiation_round >= 0", name="ck_conversation_round_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_conversation_participants", "conversation", ["brand_owner_id", "influencer_id"])
    op.create_index("ix_conversation_campaign_id", "conversation", ["campaign_id"])
    op.create_index("ix_conversation_bid_id", "conversation", ["bid_id"])
    for name, source in (("uq_conversation_open_campaign", "campaign_id"), ("uq_conversation_open_bid", "bid_id")):
        op.create_index(
            name,
            "conversation",
            ["brand_owner_id", "influencer_id", source],
            unique=True,
            postgresql_where=_OPEN_ONLY,
            sqlite_where=_OPEN_ONLY,
        )

    op.create_table(
        "message",
        sa.Column("id", _ID, nullable=False),
        sa.Column("conversation_id", sa.BigInteger(), nullable=False),
        sa.Column("sender_id", sa.BigInteger(), nullable=True),
        sa.Column("receiver_id", sa.BigInteger(), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("attachment_metadata", sa.JSON(), nullable=True),
        sa.Column("message_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("seen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_message_conversation_id", "message", ["conversation_id"])

    op.create_table(
        "ledger_transaction",
        sa.Column("id", _ID, nullable=False),
        sa.Column("conversation_id", sa.BigInteger(), nullable=False),
        sa.Column("direction", sa.String(length=8), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="INR"),
        sa.Column("payment_stage", sa.String(length=20), nullable=False),
        sa.Column("sender_id", sa.BigInteger(), nullable=True),
        sa.Column("receiver_id", sa.BigInteger(), nullable=True),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount_minor > 0", name="ck_ledger_amount_positive"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_transaction_conversation_id", "ledger_transaction", ["conversation_id"])

    op.create_table(
        "commission_setting",
        sa.Column("id", _ID, nullable=False),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_commission_percentage_range",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "deal_request",
        sa.Column("id", _ID, nullable=False),
        sa.Column("influencer_id", sa.BigInteger(), nullable=False),
        sa.Column("campaign_id", sa.BigInteger(), nullable=True),
        sa.Column("bid_id", sa.BigInteger(), nullable=True),
        sa.Column("final_agreed_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deal_request_influencer_id", "deal_request", ["influencer_id"])

    op.create_table(
        "notification",
        sa.Column("id", _ID, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])


def downgrade() -> None:
    """Drop every Dealroom table."""
    op.drop_index("ix_notification_user_id", table_name="notification")
    op.drop_table("notification")
    op.drop_index("ix_deal_request_influencer_id", table_name="deal_request")
    op.drop_table("deal_request")
    op.drop_table("commission_setting")
    op.drop_index("ix_ledger_transaction_conversation_id", table_name="ledger_transaction")
    op.drop_table("ledger_transaction")
    op.drop_index("ix_message_conversation_id", table_name="message")
    op.drop_table("message")
    op.drop_index("uq_conversation_open_bid", table_name="conversation")
    op.drop_index("uq_conversation_open_campaign", table_name="conversation")
    op.drop_index("ix_conversation_bid_id", table_name="conversation")
    op.drop_index("ix_conversation_campaign_id", table_name="conversation")
    op.drop_index("ix_conversation_participants", table_name="conversation")
    op.drop_table("conversation")
