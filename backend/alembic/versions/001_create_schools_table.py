"""Create schools table

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the `schools` table backing the school directory.
How:   Integer identity key, a unique email column and indexes for the
       list, city and state queries.

Rollback: downgrade() drops the table (all school records are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "schools",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),

        # Exactly ten digits, checked by the application
        sa.Column("contact", sa.String(10), nullable=False),

        # Stored lower-cased; the unique constraint backs the duplicate check
        sa.Column(
            "email_id",
            sa.String(255),
            nullable=False,
            comment="Contact email, lower-cased, unique across schools",
        ),

        sa.Column(
            "image",
            sa.String(500),
            nullable=True,
            comment="Image URL or upload storage key",
        ),

        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),

        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email_id", name="uq_schools_email_id"),
    )

    op.create_index("idx_schools_city", "schools", ["city"])
    op.create_index("idx_schools_state", "schools", ["state"])
    # Default listing is newest first
    op.create_index(
        "idx_schools_created_at",
        "schools",
        [sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_schools_created_at", table_name="schools")
    op.drop_index("idx_schools_state", table_name="schools")
    op.drop_index("idx_schools_city", table_name="schools")
    op.drop_table("schools")
