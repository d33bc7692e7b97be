"""init

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "servers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("dns_ip4", sa.String(length=45), nullable=True),
        sa.Column("dns_ip6", sa.String(length=45), nullable=True),
        sa.Column(
            "api_ip", sa.String(length=45), server_default=sa.text("'127.0.0.1'"), nullable=False
        ),
        sa.Column("api_token", sa.String(length=128), nullable=True),
        sa.Column("is_local", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
    )

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("type", sa.String(length=10), server_default=sa.text("'forward'"), nullable=False),
        sa.Column("ttl", sa.Integer(), server_default=sa.text("86400"), nullable=False),
        sa.Column("prefix_length", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("soa_ns", sa.String(length=255), nullable=False),
        sa.Column("soa_mail", sa.String(length=255), nullable=False),
        sa.Column("soa_serial", sa.BigInteger(), nullable=False),
        sa.Column("soa_refresh", sa.Integer(), server_default=sa.text("3600"), nullable=False),
        sa.Column("soa_retry", sa.Integer(), server_default=sa.text("900"), nullable=False),
        sa.Column("soa_expire", sa.Integer(), server_default=sa.text("1209600"), nullable=False),
        sa.Column("soa_minimum", sa.Integer(), server_default=sa.text("86400"), nullable=False),
        sa.Column("allow_dyndns", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
    )

    op.create_table(
        "zone_servers",
        sa.Column(
            "zone_id",
            sa.Integer(),
            sa.ForeignKey("zones.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "server_id",
            sa.Integer(),
            sa.ForeignKey("servers.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("is_master", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    )

    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("ttl", sa.Integer(), nullable=True),
        sa.Column(
            "server_id", sa.Integer(), sa.ForeignKey("servers.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
    )
    op.create_index("ix_records_zone_id", "records", ["zone_id"])

    op.create_table(
        "pending_zones",
        sa.Column(
            "zone_id",
            sa.Integer(),
            sa.ForeignKey("zones.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "queued_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
    )

    op.create_table(
        "publish_state",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_rebuild", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("last_publish_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_publish_status", sa.String(length=10), nullable=True),
    )
    op.execute("INSERT INTO publish_state (id, full_rebuild) VALUES (1, false)")

    op.create_table(
        "diagnostics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("target_type", sa.String(length=20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column(
            "server_id", sa.Integer(), sa.ForeignKey("servers.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("check_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("notified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("last_check", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint(
            "target_type", "target_id", "check_type", "server_id", name="uq_diagnostics_target"
        ),
    )
    op.create_index("ix_diagnostics_target_id", "diagnostics", ["target_id"])

    op.create_table(
        "diagnostic_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("target_type", sa.String(length=20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("server_id", sa.Integer(), nullable=True),
        sa.Column("check_type", sa.String(length=50), nullable=False),
        sa.Column("old_status", sa.String(length=10), nullable=False),
        sa.Column("new_status", sa.String(length=10), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("ix_diagnostic_log_changed_at", "diagnostic_log", ["changed_at"])

    op.create_table(
        "dyndns_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("hostname", sa.String(length=255), nullable=False),
        sa.Column("current_ipv4", sa.String(length=45), nullable=True),
        sa.Column("current_ipv6", sa.String(length=45), nullable=True),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "config_changes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("actor", sa.String(length=100), nullable=True),
        sa.Column("before_data", postgresql.JSONB(), nullable=True),
        sa.Column("after_data", postgresql.JSONB(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False
        ),
    )
    op.create_index("ix_config_changes_entity", "config_changes", ["entity_type", "entity_id"])
    op.create_index("ix_config_changes_created_at", "config_changes", ["created_at"])

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("config_changes")
    op.drop_table("dyndns_accounts")
    op.drop_table("diagnostic_log")
    op.drop_table("diagnostics")
    op.drop_table("publish_state")
    op.drop_table("pending_zones")
    op.drop_table("records")
    op.drop_table("zone_servers")
    op.drop_table("zones")
    op.drop_table("servers")
