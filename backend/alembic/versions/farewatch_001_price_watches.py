"""price_watches table

Revision ID: farewatch_001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "farewatch_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "price_watches",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=False, server_default="anon"),
        sa.Column("origin", sa.String(10), nullable=False),
        sa.Column("destination", sa.String(10), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("trip_type", sa.String(20), nullable=False, server_default="roundtrip"),
        sa.Column("flex_days", sa.Integer, server_default="0"),
        sa.Column("cabin", sa.String(20), server_default="ECONOMY"),
        sa.Column("max_stops", sa.Integer, server_default="1"),
        sa.Column("adults", sa.Integer, server_default="1"),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("target_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("active", sa.Boolean, server_default="true"),
        sa.Column("last_best_usd", sa.Numeric(10, 2)),
        sa.Column("last_notified_usd", sa.Numeric(10, 2)),
        sa.Column("email", sa.String(320)),
        sa.Column("provider", sa.String(30), server_default="amadeus"),
        sa.Column("last_provider", sa.String(30)),
        sa.Column("last_source_link", sa.Text),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("start_date <= end_date", name="ck_price_watches_window"),
        sa.CheckConstraint("target_usd > 0", name="ck_price_watches_target"),
    )
    op.create_index("idx_price_watches_user", "price_watches", ["user_id", "created_at"])
    op.create_index("idx_price_watches_active", "price_watches", ["active"])


def downgrade() -> None:
    op.drop_index("idx_price_watches_active", table_name="price_watches")
    op.drop_index("idx_price_watches_user", table_name="price_watches")
    op.drop_table("price_watches")
