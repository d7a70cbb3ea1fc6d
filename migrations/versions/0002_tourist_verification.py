"""tourist verification timestamp for the entry desk

Revision ID: 0002_tourist_verification
Revises: 0001_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_tourist_verification"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("tourists", sa.Column("verified_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    op.drop_column("tourists", "verified_at")
