"""Initial schema for the video message service.

Revision ID: 001
Revises: None
Create Date: 2025-11-03

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recordings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False, unique=True),
        sa.Column("size_bytes", sa.BigInteger, nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("duration_ms", sa.BigInteger, nullable=True),
        sa.Column(
            "processing_status",
            sa.String(20),
            nullable=False,
            server_default="PROCESSING",
        ),
        sa.Column("processing_error", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime,
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_index(
        "idx_recordings_status",
        "recordings",
        ["processing_status"],
    )
    op.create_index(
        "idx_recordings_created_at",
        "recordings",
        ["created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_recordings_created_at", table_name="recordings")
    op.drop_index("idx_recordings_status", table_name="recordings")
    op.drop_table("recordings")
