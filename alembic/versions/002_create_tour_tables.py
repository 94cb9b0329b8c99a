"""Create tour, tour_start_date and tour_guide tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "tour",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=40), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("max_group_size", sa.Integer(), nullable=False),
        sa.Column("difficulty", sa.String(length=16), nullable=False),
        sa.Column("ratings_average", sa.Float(), nullable=False, server_default="4.5"),
        sa.Column("ratings_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("price_discount", sa.Float(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_cover", sa.String(length=256), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("start_location", sa.JSON(), nullable=True),
        sa.Column("locations", sa.JSON(), nullable=False),
        sa.Column("secret_tour", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_tour_slug"), "tour", ["slug"], unique=False)

    op.create_table(
        "tour_start_date",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tour_id", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tour_id"], ["tour.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tour_start_date_tour_id"), "tour_start_date", ["tour_id"], unique=False)

    op.create_table(
        "tour_guide",
        sa.Column("tour_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["tour_id"], ["tour.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("tour_id", "user_id"),
    )


def downgrade() -> None:
    op.drop_table("tour_guide")
    op.drop_index(op.f("ix_tour_start_date_tour_id"), table_name="tour_start_date")
    op.drop_table("tour_start_date")
    op.drop_index(op.f("ix_tour_slug"), table_name="tour")
    op.drop_table("tour")
