"""Create contacts, groups, campaigns, metrics, unsubscribe and config tables.

Revision ID: 20261012_0001
Revises: 
Create Date: 2026-10-12 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261012_0001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "contacts",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=True),
        sa.Column("last_name", sa.String(length=50), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="active", nullable=False),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "status IN ('active', 'unsubscribed', 'bounced')",
            name="ck_contacts_status",
        ),
    )
    op.create_index("ix_contacts_user_id", "contacts", ["user_id"])
    op.create_index("ix_contacts_user_id_created_at", "contacts", ["user_id", "created_at"])
    op.create_index("ix_contacts_user_id_email", "contacts", ["user_id", "email"])

    op.create_table(
        "groups",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_groups_user_id", "groups", ["user_id"])
    op.create_index("ix_groups_user_id_created_at", "groups", ["user_id", "created_at"])

    op.create_table(
        "contact_groups",
        sa.Column("contact_id", sa.Uuid(), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("contact_id", "group_id"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_contact_groups_group_id", "contact_groups", ["group_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="draft", nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "status IN ('draft', 'sent', 'scheduled', 'paused')",
            name="ck_campaigns_status",
        ),
    )
    op.create_index("ix_campaigns_user_id", "campaigns", ["user_id"])
    op.create_index("ix_campaigns_user_id_created_at", "campaigns", ["user_id", "created_at"])

    op.create_table(
        "campaign_groups",
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("campaign_id", "group_id"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_campaign_groups_group_id", "campaign_groups", ["group_id"])

    op.create_table(
        "email_metrics",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("campaign_id", sa.Uuid(), nullable=False),
        sa.Column("contact_id", sa.Uuid(), nullable=False),
        sa.Column(
            "sent_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bounced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsubscribed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_email_metrics_user_id", "email_metrics", ["user_id"])
    op.create_index("ix_email_metrics_contact_id", "email_metrics", ["contact_id"])
    op.create_index(
        "ix_email_metrics_campaign_id_contact_id",
        "email_metrics",
        ["campaign_id", "contact_id"],
    )

    op.create_table(
        "unsubscribe_logs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("contact_id", sa.Uuid(), nullable=True),
        sa.Column("campaign_id", sa.Uuid(), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column(
            "unsubscribed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_unsubscribe_logs_user_id_unsubscribed_at",
        "unsubscribe_logs",
        ["user_id", "unsubscribed_at"],
    )

    op.create_table(
        "config",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("user_id", "key", name="uq_config_user_id_key"),
    )
    op.create_index("ix_config_user_id", "config", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_config_user_id", table_name="config")
    op.drop_table("config")
    op.drop_index("ix_unsubscribe_logs_user_id_unsubscribed_at", table_name="unsubscribe_logs")
    op.drop_table("unsubscribe_logs")
    op.drop_index("ix_email_metrics_campaign_id_contact_id", table_name="email_metrics")
    op.drop_index("ix_email_metrics_contact_id", table_name="email_metrics")
    op.drop_index("ix_email_metrics_user_id", table_name="email_metrics")
    op.drop_table("email_metrics")
    op.drop_index("ix_campaign_groups_group_id", table_name="campaign_groups")
    op.drop_table("campaign_groups")
    op.drop_index("ix_campaigns_user_id_created_at", table_name="campaigns")
    op.drop_index("ix_campaigns_user_id", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("ix_contact_groups_group_id", table_name="contact_groups")
    op.drop_table("contact_groups")
    op.drop_index("ix_groups_user_id_created_at", table_name="groups")
    op.drop_index("ix_groups_user_id", table_name="groups")
    op.drop_table("groups")
    op.drop_index("ix_contacts_user_id_email", table_name="contacts")
    op.drop_index("ix_contacts_user_id_created_at", table_name="contacts")
    op.drop_index("ix_contacts_user_id", table_name="contacts")
    op.drop_table("contacts")
