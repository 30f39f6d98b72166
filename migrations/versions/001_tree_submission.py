"""tree_submission with unique fingerprint index

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tree_submission",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("user_email", sa.String(), nullable=True),
        sa.Column("species", sa.String(), nullable=True),
        sa.Column("planted_on", sa.Date(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("labels", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("matched_keywords", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Closes the check-then-act race between concurrent submissions of the same image.
    op.create_index(
        "ux_tree_submission_fingerprint",
        "tree_submission",
        ["fingerprint"],
        unique=True,
    )
    op.create_index("ix_tree_submission_user_id", "tree_submission", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_tree_submission_user_id", table_name="tree_submission")
    op.drop_index("ux_tree_submission_fingerprint", table_name="tree_submission")
    op.drop_table("tree_submission")
