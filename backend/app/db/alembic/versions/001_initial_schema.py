"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates all tables:
- trip, trip_day, trip_activity
- user_credits, credit_transaction
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create all tables."""
    # trip table
    op.create_table(
        "trip",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("destination_cities", JSONType, nullable=False),
        sa.Column("duration_nights", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("arrival_time", sa.Text(), nullable=True),
        sa.Column("departure_time", sa.Text(), nullable=True),
        sa.Column("companion", sa.Text(), nullable=False),
        sa.Column("arrival_point", sa.Text(), nullable=True),
        sa.Column("stay_area", sa.Text(), nullable=False),
        sa.Column("transport_mode", sa.Text(), nullable=False),
        sa.Column("iconic_preference", sa.Text(), nullable=False),
        sa.Column("budget", sa.Text(), nullable=False),
        sa.Column("pace", sa.Text(), nullable=False),
        sa.Column("must_visit_places", JSONType, nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'generating', 'completed', 'failed')", name="ck_trip_status"
        ),
    )
    op.create_index("idx_trip_user_created", "trip", ["user_id", "created_at"])

    # trip_day table
    op.create_table(
        "trip_day",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("trip_id", sa.Uuid(), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("weather", JSONType, nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_trip_day_trip_number", "trip_day", ["trip_id", "day_number"])

    # trip_activity table
    op.create_table(
        "trip_activity",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("day_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("slot", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.Text(), nullable=True),
        sa.Column("end_time", sa.Text(), nullable=True),
        sa.Column("cost", sa.Text(), nullable=True),
        sa.Column("tips", sa.Text(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.ForeignKeyConstraint(["day_id"], ["trip_day.id"], ondelete="CASCADE"),
    )

    # user_credits table
    op.create_table(
        "user_credits",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("balance", sa.Integer(), server_default="0", nullable=False),
        sa.Column("lifetime_earned", sa.Integer(), server_default="0", nullable=False),
        sa.Column("lifetime_spent", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_premium", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_user_credits_balance"),
    )

    # credit_transaction table
    op.create_table(
        "credit_transaction",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("reference_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_credits.user_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_credit_tx_user_created", "credit_transaction", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_credit_tx_user_created", table_name="credit_transaction")
    op.drop_table("credit_transaction")
    op.drop_table("user_credits")
    op.drop_table("trip_activity")
    op.drop_index("idx_trip_day_trip_number", table_name="trip_day")
    op.drop_table("trip_day")
    op.drop_index("idx_trip_user_created", table_name="trip")
    op.drop_table("trip")
