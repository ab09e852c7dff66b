"""Sample catalog for local development without a database.

One course with two modules of two lessons each, and a quiz whose first
question still has its options in the legacy generation.
"""

from __future__ import annotations

import logging
from uuid import UUID

from progress_engine.models.assignment import Assignment
from progress_engine.models.course import Course, CourseModule, Lesson
from progress_engine.models.quiz import Quiz, QuizOption, QuizQuestion
from progress_engine.repos.catalog_repo import InMemoryCatalogRepo

logger = logging.getLogger(__name__)

SAMPLE_COURSE_ID = UUID("00000000-0000-0000-0000-000000000001")
SAMPLE_INSTRUCTOR_ID = UUID("00000000-0000-0000-0000-0000000000aa")


def seed_sample_catalog(catalog: InMemoryCatalogRepo) -> UUID:
    """Populate the sample course once.  Returns its id."""
    if catalog.has_course(SAMPLE_COURSE_ID):
        return SAMPLE_COURSE_ID

    course = Course(
        id=SAMPLE_COURSE_ID,
        slug="intro-to-learning-analytics",
        title="Introduction to Learning Analytics",
        instructor_id=SAMPLE_INSTRUCTOR_ID,
    )
    catalog.add_course(course)

    for m in range(1, 3):
        module = CourseModule.new(course_id=course.id, position=m, title=f"Module {m}")
        catalog.add_module(module)
        for n in range(1, 3):
            catalog.add_lesson(
                Lesson.new(module_id=module.id, position=n, title=f"Lesson {m}.{n}")
            )

    quiz = Quiz.new(course_id=course.id, title="Checkpoint", passing_score=50)
    catalog.add_quiz(quiz)

    legacy_q = QuizQuestion.new(
        quiz_id=quiz.id,
        question_type="true_false",
        prompt="Progress is recomputed from lesson completions.",
        position=1,
    )
    catalog.add_question(legacy_q)
    for i, (text, correct) in enumerate((("True", True), ("False", False))):
        catalog.add_legacy_option(
            QuizOption.new(
                question_id=legacy_q.id, option_text=text, is_correct=correct, position=i
            )
        )

    current_q = QuizQuestion.new(
        quiz_id=quiz.id,
        question_type="single_choice",
        prompt="What does 1 of 8 lessons round to?",
        position=2,
    )
    catalog.add_question(current_q)
    for i, (text, correct) in enumerate((("12%", False), ("13%", True))):
        catalog.add_current_option(
            QuizOption.new(
                question_id=current_q.id,
                option_text=text,
                is_correct=correct,
                position=i,
            )
        )

    catalog.add_assignment(Assignment.new(course_id=course.id, title="Reflection"))
    logger.info("Seeded sample course id=%s", course.id)
    return course.id
