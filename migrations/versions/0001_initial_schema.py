"""Initial schema: listings, votes, bumps, analytics, trending, activity feed

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2025-01-06 10:00:00.000000

Unique keys carry the engagement invariants: one vote per
(user, listing, day), one trending row and one analytics row per
(listing, date).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(10), nullable=False, server_default="server"),
        sa.Column("tier", sa.String(10), nullable=False, server_default="free"),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bump_count", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_bumped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("type IN ('server', 'bot')", name="ck_listings_type"),
        sa.CheckConstraint("tier IN ('free', 'gold', 'platinum')", name="ck_listings_tier"),
    )
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])

    op.create_table(
        "votes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("listing_id", UUID(as_uuid=True),
                  sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vote_date", sa.Date(), nullable=False),
        sa.Column("voted_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "listing_id", "vote_date",
                            name="uq_votes_user_listing_date"),
    )
    op.create_index("ix_votes_listing_id", "votes", ["listing_id"])

    op.create_table(
        "bumps",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("listing_id", UUID(as_uuid=True),
                  sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("bump_type", sa.String(10), nullable=False, server_default="manual"),
        sa.Column("weight", sa.Float(), nullable=False, server_default="1"),
        sa.Column("bumped_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bumps_listing_id", "bumps", ["listing_id"])

    op.create_table(
        "listing_analytics",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("listing_id", UUID(as_uuid=True),
                  sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_visitors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("joins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bumps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_count", sa.Integer(), nullable=True),
        sa.UniqueConstraint("listing_id", "date", name="uq_listing_analytics_listing_date"),
    )

    op.create_table(
        "trending_metrics",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("listing_id", UUID(as_uuid=True),
                  sa.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("member_growth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vote_growth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_growth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("growth_velocity", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("engagement_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("trending_score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("listing_id", "date", name="uq_trending_metrics_listing_date"),
    )
    op.create_index(
        "ix_trending_metrics_date_score",
        "trending_metrics",
        ["date", "trending_score"],
    )

    op.create_table(
        "activity_records",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=True),
        sa.Column("target_id", UUID(as_uuid=True), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_activity_records_created_at_id",
        "activity_records",
        ["created_at", "id"],
    )

    op.create_table(
        "auto_bump_settings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("interval_hours", sa.Float(), nullable=False, server_default="12"),
        sa.Column("last_auto_bump_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "scoring_runs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("stats_json", JSONB, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("scoring_runs")
    op.drop_table("auto_bump_settings")
    op.drop_index("ix_activity_records_created_at_id", table_name="activity_records")
    op.drop_table("activity_records")
    op.drop_index("ix_trending_metrics_date_score", table_name="trending_metrics")
    op.drop_table("trending_metrics")
    op.drop_table("listing_analytics")
    op.drop_index("ix_bumps_listing_id", table_name="bumps")
    op.drop_table("bumps")
    op.drop_index("ix_votes_listing_id", table_name="votes")
    op.drop_table("votes")
    op.drop_index("ix_listings_owner_id", table_name="listings")
    op.drop_table("listings")
