"""Create WhatsApp contacts and messages tables.

Revision ID: 20261012_0002
Revises: 20261012_0001
Create Date: 2026-10-12 00:00:01.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261012_0002"
down_revision = "20261012_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "whatsapp_contacts",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("wa_id", sa.String(length=32), nullable=False),
        sa.Column("profile_name", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("wa_id", name="uq_whatsapp_contacts_wa_id"),
    )
    op.create_table(
        "whatsapp_messages",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("message_id", sa.String(length=128), nullable=True),
        sa.Column("from_number", sa.String(length=32), nullable=False),
        sa.Column("to_number", sa.String(length=32), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("message_id", name="uq_whatsapp_messages_message_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'delivered', 'read', 'failed', 'received')",
            name="ck_whatsapp_messages_status",
        ),
    )
    op.create_index(
        "ix_whatsapp_messages_from_number_created_at",
        "whatsapp_messages",
        ["from_number", "created_at"],
    )
    op.create_index(
        "ix_whatsapp_messages_to_number_created_at",
        "whatsapp_messages",
        ["to_number", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_whatsapp_messages_to_number_created_at", table_name="whatsapp_messages")
    op.drop_index("ix_whatsapp_messages_from_number_created_at", table_name="whatsapp_messages")
    op.drop_table("whatsapp_messages")
    op.drop_table("whatsapp_contacts")
