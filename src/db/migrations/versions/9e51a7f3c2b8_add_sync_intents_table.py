"""add sync_intents table"""

from alembic import op
import sqlalchemy as sa


revision: str = "9e51a7f3c2b8"
down_revision = "4b7e2c91d0a3"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sync_intents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("operation", sa.String(16), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("vector_id", sa.String(36), nullable=False),
        sa.Column("namespace", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sync_intents_question_id", "sync_intents", ["question_id"])
    op.create_index("ix_sync_intents_status", "sync_intents", ["status"])


def downgrade() -> None:
    op.drop_index("ix_sync_intents_status", table_name="sync_intents")
    op.drop_index("ix_sync_intents_question_id", table_name="sync_intents")
    op.drop_table("sync_intents")
