"""Create runs, patterns, pattern_matches and insights tables

Revision ID: 001_learning_tables
Revises:
Create Date: 2026-10-18

"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_learning_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "runs",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("task", sa.Text, nullable=False),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("duration_seconds", sa.Integer, nullable=True),
        sa.Column("timestamp", sa.String(length=64), nullable=False),
        sa.Column("tools_used", sa.JSON, nullable=False),
        sa.Column("files_touched", sa.JSON, nullable=False),
        sa.Column("tests_passed", sa.Boolean, nullable=True),
        sa.Column("lint_passed", sa.Boolean, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("agent", sa.String(length=128), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=False),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("analyzed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_runs_outcome", "runs", ["outcome"])
    op.create_index("ix_runs_timestamp", "runs", ["timestamp"])
    op.create_index("ix_runs_analyzed", "runs", ["analyzed"])

    op.create_table(
        "patterns",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("impact", sa.String(length=16), nullable=False),
        sa.Column("outcome_correlation", sa.String(length=16), nullable=False),
        sa.Column("frequency", sa.Integer, nullable=False, server_default="0"),
        sa.Column("first_seen", sa.String(length=64), nullable=True),
        sa.Column("last_seen", sa.String(length=64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_patterns_name", "patterns", ["name"])

    op.create_table(
        "pattern_matches",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "run_id", sa.String(length=128), sa.ForeignKey("runs.id"), nullable=False
        ),
        sa.Column(
            "pattern_id",
            sa.String(length=128),
            sa.ForeignKey("patterns.id"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "run_id", "pattern_id", name="uq_pattern_matches_run_pattern"
        ),
    )
    op.create_index("ix_pattern_matches_run", "pattern_matches", ["run_id"])
    op.create_index("ix_pattern_matches_pattern", "pattern_matches", ["pattern_id"])

    op.create_table(
        "insights",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("confidence", sa.Float, nullable=False),
        sa.Column("based_on_runs", sa.Integer, nullable=False),
        sa.Column("patterns", sa.JSON, nullable=False),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("cadence", sa.String(length=32), nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_insights_active", "insights", ["active"])


def downgrade() -> None:
    op.drop_index("ix_insights_active", table_name="insights")
    op.drop_table("insights")

    op.drop_index("ix_pattern_matches_pattern", table_name="pattern_matches")
    op.drop_index("ix_pattern_matches_run", table_name="pattern_matches")
    op.drop_table("pattern_matches")

    op.drop_index("ix_patterns_name", table_name="patterns")
    op.drop_table("patterns")

    op.drop_index("ix_runs_analyzed", table_name="runs")
    op.drop_index("ix_runs_timestamp", table_name="runs")
    op.drop_index("ix_runs_outcome", table_name="runs")
    op.drop_table("runs")
