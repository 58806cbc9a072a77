"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

import sqlalchemy as sa

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Books (catalog)
    op.create_table(
        "books",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False, index=True),
        sa.Column("author", sa.String(300), nullable=True, index=True),
        sa.Column("categories", sa.JSON, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("format", sa.String(50), nullable=True),
        sa.Column("publisher", sa.String(300), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("available", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # User Interactions (append-only event log)
    interaction_type = sa.Enum("view", "borrow", "bookmark", name="interaction_type_enum")
    op.create_table(
        "user_interactions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("book_id", sa.String(64), nullable=False),
        sa.Column("interaction_type", interaction_type, nullable=False),
        sa.Column("categories", sa.JSON, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("author", sa.String(300), nullable=True),
        sa.Column("format", sa.String(50), nullable=True),
        sa.Column("publisher", sa.String(300), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_user_interactions_created_at", "user_interactions", ["created_at"])
    op.create_index("ix_interactions_user_time", "user_interactions", ["user_id", "created_at"])
    op.create_index("ix_interactions_book_time", "user_interactions", ["book_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_interactions_book_time", table_name="user_interactions")
    op.drop_index("ix_interactions_user_time", table_name="user_interactions")
    op.drop_index("ix_user_interactions_created_at", table_name="user_interactions")
    op.drop_table("user_interactions")
    op.execute("DROP TYPE IF EXISTS interaction_type_enum")
    op.drop_table("books")
