"""initial_tables

Create servers, verified_users, approval_requests and bot_stats.

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

approval_status = sa.Enum("PENDING", "APPROVED", "DENIED", name="approvalstatus")


def upgrade() -> None:
    op.create_table(
        "servers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("server_id", sa.String(32), nullable=False),
        sa.Column("server_name", sa.String(255), nullable=False),
        sa.Column("owner_discord_id", sa.String(32), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_servers_server_id", "servers", ["server_id"], unique=True)

    op.create_table(
        "verified_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("discord_id", sa.String(32), nullable=False),
        sa.Column("roblox_id", sa.String(32), nullable=False),
        sa.Column("roblox_username", sa.String(255), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_verified_users_discord_id", "verified_users", ["discord_id"], unique=True)
    op.create_index("ix_verified_users_roblox_id", "verified_users", ["roblox_id"])

    op.create_table(
        "approval_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("server_id", sa.String(32), nullable=False),
        sa.Column("server_name", sa.String(255), nullable=False),
        sa.Column("requested_by", sa.String(255), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", approval_status, nullable=False, server_default="PENDING"),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_approval_requests_server_id", "approval_requests", ["server_id"], unique=True)

    op.create_table(
        "bot_stats",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("commands_run", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verifications", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("uptime", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_startup", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("bot_stats")
    op.drop_index("ix_approval_requests_server_id", table_name="approval_requests")
    op.drop_table("approval_requests")
    op.drop_index("ix_verified_users_roblox_id", table_name="verified_users")
    op.drop_index("ix_verified_users_discord_id", table_name="verified_users")
    op.drop_table("verified_users")
    op.drop_index("ix_servers_server_id", table_name="servers")
    op.drop_table("servers")
    approval_status.drop(op.get_bind(), checkfirst=True)
