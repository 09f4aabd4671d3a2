"""create membership hold tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "member",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_code", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("member_code"),
    )

    op.create_table(
        "member_service",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("zone", sa.String(length=64), nullable=True),
        sa.Column("subscription_plan", sa.String(length=64), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("hold_status", sa.String(length=16), nullable=False, server_default="none"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("hold_status IN ('none', 'frozen', 'suspended')", name="ck_member_service_hold_status"),
    )
    op.create_index("ix_member_service_member", "member_service", ["member_id"])

    op.create_table(
        "membership_hold",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.Uuid(), nullable=False),
        sa.Column("action_type", sa.String(length=16), nullable=False),
        sa.Column("hold_start", sa.Date(), nullable=False),
        sa.Column("hold_end", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resumed_by", sa.String(length=255), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["member_id"], ["member.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("action_type IN ('freeze', 'suspend')", name="ck_membership_hold_action_type"),
        sa.CheckConstraint("status IN ('active', 'completed')", name="ck_membership_hold_status"),
        sa.CheckConstraint(
            "(action_type = 'freeze' AND hold_end IS NOT NULL AND hold_end > hold_start)"
            " OR (action_type = 'suspend' AND hold_end IS NULL)",
            name="ck_membership_hold_window",
        ),
    )
    op.create_index("ix_membership_hold_due", "membership_hold", ["action_type", "status", "hold_end"])
    op.create_index("ix_membership_hold_service", "membership_hold", ["service_id", "created_at"])

    op.create_table(
        "audit_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("table_name", sa.String(length=128), nullable=False),
        sa.Column("record_id", sa.String(length=128), nullable=True),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("action_by", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("correlation_id", sa.String(length=128), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entry_record", "audit_entry", ["table_name", "record_id", "timestamp"])


def downgrade() -> None:
    op.drop_index("ix_audit_entry_record", table_name="audit_entry")
    op.drop_table("audit_entry")
    op.drop_index("ix_membership_hold_service", table_name="membership_hold")
    op.drop_index("ix_membership_hold_due", table_name="membership_hold")
    op.drop_table("membership_hold")
    op.drop_index("ix_member_service_member", table_name="member_service")
    op.drop_table("member_service")
    op.drop_table("member")
