"""initial schema

Revision ID: 3b1f0c9d2e71
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f0c9d2e71"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("instructor_id", _uuid(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
    )
    op.create_table(
        "modules",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_modules_course_id", "modules", ["course_id"])
    op.create_table(
        "lessons",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("module_id", _uuid(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_lessons_module_id", "lessons", ["module_id"])
    op.create_table(
        "quizzes",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("lesson_id", _uuid(), sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
    )
    op.create_table(
        "quiz_questions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("quiz_id", _uuid(), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("question_type", sa.String(length=32), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])
    for table in ("quiz_question_options", "quiz_options"):
        op.create_table(
            table,
            sa.Column("id", _uuid(), primary_key=True),
            sa.Column(
                "question_id",
                _uuid(),
                sa.ForeignKey("quiz_questions.id"),
                nullable=False,
            ),
            sa.Column("option_text", sa.Text(), nullable=False),
            sa.Column("is_correct", sa.Boolean(), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=False),
        )
        op.create_index(f"ix_{table}_question_id", table, ["question_id"])
    op.create_table(
        "assignments",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("max_points", sa.Integer(), nullable=False),
    )

    op.create_table(
        "enrollments",
        sa.Column("student_id", _uuid(), primary_key=True),
        sa.Column(
            "course_id", _uuid(), sa.ForeignKey("courses.id"), primary_key=True
        ),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("progress_percentage", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "progress_percentage BETWEEN 0 AND 100",
            name="ck_enrollments_progress_range",
        ),
    )
    op.create_table(
        "lesson_progress",
        sa.Column("student_id", _uuid(), primary_key=True),
        sa.Column(
            "lesson_id", _uuid(), sa.ForeignKey("lessons.id"), primary_key=True
        ),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "completed = (completed_at IS NOT NULL)",
            name="ck_lesson_progress_completed_at",
        ),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("student_id", _uuid(), nullable=False),
        sa.Column("quiz_id", _uuid(), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("gradable_count", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
        sa.Column("submission_token", sa.String(length=255), nullable=True),
        sa.Column("answers_fingerprint", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("student_id", "quiz_id", "submission_token"),
        sa.CheckConstraint("score BETWEEN 0 AND 100", name="ck_quiz_attempts_score"),
    )
    op.create_index("ix_quiz_attempts_student_id", "quiz_attempts", ["student_id"])
    op.create_table(
        "quiz_answers",
        sa.Column(
            "attempt_id", _uuid(), sa.ForeignKey("quiz_attempts.id"), primary_key=True
        ),
        sa.Column(
            "question_id",
            _uuid(),
            sa.ForeignKey("quiz_questions.id"),
            primary_key=True,
        ),
        sa.Column("option_source", sa.String(length=16), nullable=True),
        sa.Column(
            "selected_option_id",
            _uuid(),
            sa.ForeignKey("quiz_question_options.id"),
            nullable=True,
        ),
        sa.Column("answer_text", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
    )
    op.create_table(
        "quiz_sessions",
        sa.Column("student_id", _uuid(), primary_key=True),
        sa.Column("quiz_id", _uuid(), sa.ForeignKey("quizzes.id"), primary_key=True),
        sa.Column("started_at", sa.Integer(), nullable=False),
        sa.Column("deadline", sa.Integer(), nullable=True),
    )
    op.create_table(
        "assignment_submissions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("student_id", _uuid(), nullable=False),
        sa.Column(
            "assignment_id", _uuid(), sa.ForeignKey("assignments.id"), nullable=False
        ),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("submission_text", sa.Text(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.Integer(), nullable=True),
        sa.Column("graded_at", sa.Integer(), nullable=True),
        sa.Column("graded_by", _uuid(), nullable=True),
        sa.UniqueConstraint("student_id", "assignment_id"),
    )


def downgrade() -> None:
    for table in (
        "assignment_submissions",
        "quiz_sessions",
        "quiz_answers",
        "quiz_attempts",
        "lesson_progress",
        "enrollments",
        "assignments",
        "quiz_options",
        "quiz_question_options",
        "quiz_questions",
        "quizzes",
        "lessons",
        "modules",
        "courses",
    ):
        op.drop_table(table)
