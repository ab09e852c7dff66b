"""Read-only course and quiz catalog.

The engine never writes the catalog.  The in-memory implementation has
plain ``add_*`` methods so dev seeding and tests can populate it.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_engine.models.assignment import Assignment
from progress_engine.models.course import Course, CourseModule, Lesson
from progress_engine.models.quiz import Quiz, QuizOption, QuizQuestion


class CatalogRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lesson_ids(self, course_id: UUID) -> list[UUID]: ...
    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]: ...
    async def list_current_options(self, question_id: UUID) -> list[QuizOption]: ...
    async def list_legacy_options(self, question_id: UUID) -> list[QuizOption]: ...
    async def get_assignment(self, assignment_id: UUID) -> Assignment | None: ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._quizzes: dict[UUID, Quiz] = {}
        self._questions: dict[UUID, QuizQuestion] = {}
        self._current_options: dict[UUID, QuizOption] = {}
        self._legacy_options: dict[UUID, QuizOption] = {}
        self._assignments: dict[UUID, Assignment] = {}

    # --- seeding ---

    def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course

    def has_course(self, course_id: UUID) -> bool:
        return course_id in self._courses

    def add_module(self, module: CourseModule) -> None:
        if module.course_id not in self._courses:
            raise KeyError("course not found")
        self._modules[module.id] = module

    def add_lesson(self, lesson: Lesson) -> None:
        if lesson.module_id not in self._modules:
            raise KeyError("module not found")
        self._lessons[lesson.id] = lesson

    def add_quiz(self, quiz: Quiz) -> None:
        if quiz.course_id not in self._courses:
            raise KeyError("course not found")
        self._quizzes[quiz.id] = quiz

    def add_question(self, question: QuizQuestion) -> None:
        if question.quiz_id not in self._quizzes:
            raise KeyError("quiz not found")
        self._questions[question.id] = question

    def add_current_option(self, option: QuizOption) -> None:
        self._current_options[option.id] = option

    def add_legacy_option(self, option: QuizOption) -> None:
        self._legacy_options[option.id] = option

    def add_assignment(self, assignment: Assignment) -> None:
        if assignment.course_id not in self._courses:
            raise KeyError("course not found")
        self._assignments[assignment.id] = assignment

    def clear(self) -> None:
        for store in (
            self._courses,
            self._modules,
            self._lessons,
            self._quizzes,
            self._questions,
            self._current_options,
            self._legacy_options,
            self._assignments,
        ):
            store.clear()

    # --- reads ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lesson_ids(self, course_id: UUID) -> list[UUID]:
        module_ids = {m.id for m in self._modules.values() if m.course_id == course_id}
        return [
            lesson.id
            for lesson in self._lessons.values()
            if lesson.module_id in module_ids
        ]

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        questions = [q for q in self._questions.values() if q.quiz_id == quiz_id]
        return sorted(questions, key=lambda q: q.position)

    async def list_current_options(self, question_id: UUID) -> list[QuizOption]:
        return _options_for(self._current_options, question_id)

    async def list_legacy_options(self, question_id: UUID) -> list[QuizOption]:
        return _options_for(self._legacy_options, question_id)

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        return self._assignments.get(assignment_id)


def _options_for(store: dict[UUID, QuizOption], question_id: UUID) -> list[QuizOption]:
    options = [o for o in store.values() if o.question_id == question_id]
    return sorted(options, key=lambda o: o.position)
