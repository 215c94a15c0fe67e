"""create_document_table

Revision ID: e1a4c7d2b903
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "e1a4c7d2b903"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Apply migration - create document table."""
    op.create_table(
        "document",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("collection", sa.String(length=50), nullable=False),
        sa.Column("doc_id", sa.String(length=128), nullable=False),
        # Mirrors the document's createdAt field for indexed range queries
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "stored_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        # Constraints
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("collection", "doc_id", name="uq_document_collection_doc_id"),
    )

    op.create_index(
        op.f("ix_document_collection"),
        "document",
        ["collection"],
        unique=False,
    )
    op.create_index(
        "ix_document_collection_created_at",
        "document",
        ["collection", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration - drop document table."""
    op.drop_index("ix_document_collection_created_at", table_name="document")
    op.drop_index(op.f("ix_document_collection"), table_name="document")
    op.drop_table("document")
