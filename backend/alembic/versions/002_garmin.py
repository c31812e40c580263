"""Garmin connections (encrypted credentials + session tokens) and weekly_stats.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "garmin_connections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("encrypted_username", sa.Text(), nullable=False),
        sa.Column("encrypted_password", sa.Text(), nullable=False),
        sa.Column("encrypted_session_tokens", sa.Text(), nullable=True),
        sa.Column("garmin_user_id", sa.String(255), nullable=True),
        sa.Column("connected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_garmin_connections_user_id", "garmin_connections", ["user_id"], unique=True)

    op.create_table(
        "weekly_stats",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("athlete_id", sa.Integer(), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("total_distance_km", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_runs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_pace_min_km", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["athlete_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("athlete_id", "week_start", name="uq_weekly_stats_athlete_week"),
    )
    op.create_index("ix_weekly_stats_athlete_id", "weekly_stats", ["athlete_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_weekly_stats_athlete_id", table_name="weekly_stats")
    op.drop_table("weekly_stats")
    op.drop_index("ix_garmin_connections_user_id", table_name="garmin_connections")
    op.drop_table("garmin_connections")
