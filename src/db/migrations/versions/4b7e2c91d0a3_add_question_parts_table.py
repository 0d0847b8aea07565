"""add question_parts table"""

from alembic import op
import sqlalchemy as sa


revision: str = "4b7e2c91d0a3"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SEQUENCE IF NOT EXISTS question_parts_id_seq")

    op.create_table(
        "question_parts",
        sa.Column(
            "id",
            sa.Integer(),
            sa.Sequence("question_parts_id_seq"),
            server_default=sa.text("nextval('question_parts_id_seq')"),
            primary_key=True,
        ),
        sa.Column("course_code", sa.String(32), nullable=False),
        sa.Column("course_title", sa.String(255), nullable=False),
        sa.Column("short", sa.String(64), nullable=False),
        sa.Column("semester_term", sa.String(64), nullable=False),
        sa.Column("exam_type", sa.String(64), nullable=False),
        sa.Column("question_number", sa.String(16), nullable=False),
        sa.Column("sub_question", sa.String(16), nullable=True),
        sa.Column("marks", sa.Float(), nullable=True),
        sa.Column("total_question_mark", sa.Float(), nullable=True),
        sa.Column("contribution_percentage", sa.Float(), nullable=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("has_description", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description_content", sa.Text(), nullable=True),
        sa.Column("has_image", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("image_type", sa.String(32), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("pdf_url", sa.String(), nullable=True),
        sa.Column("vector_id", sa.String(36), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("ALTER SEQUENCE question_parts_id_seq OWNED BY question_parts.id")
    op.create_index("ix_question_parts_course_code", "question_parts", ["course_code"])
    op.create_index("ix_question_parts_short", "question_parts", ["short"])


def downgrade() -> None:
    op.drop_index("ix_question_parts_short", table_name="question_parts")
    op.drop_index("ix_question_parts_course_code", table_name="question_parts")
    op.drop_table("question_parts")
    op.execute("DROP SEQUENCE IF EXISTS question_parts_id_seq")
