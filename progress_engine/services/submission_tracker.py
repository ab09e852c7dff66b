"""Assignment submissions: not_submitted -> submitted -> graded.

Students may overwrite their submission until it is graded; after that
it is locked for them.  The course instructor may grade and re-grade at
any time.  Scores are clamped to [0, max_points].
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from progress_engine.core.clock import Clock, utc_now
from progress_engine.core.errors import (
    NotEnrolled,
    NotFound,
    PermissionDenied,
    SubmissionLocked,
    Unauthenticated,
    ValidationError,
)
from progress_engine.core.metrics import SUBMISSION_EVENTS
from progress_engine.db.unit_of_work import UnitOfWorkFactory, unit_of_work
from progress_engine.models.assignment import AssignmentSubmission
from progress_engine.services.notifications import (
    Notification,
    NotificationDispatcher,
    notification_dispatcher,
    send_best_effort,
)

logger = logging.getLogger(__name__)


class SubmissionTracker:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory = unit_of_work,
        dispatcher: NotificationDispatcher = notification_dispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._clock = clock

    async def submit(
        self,
        student_id: UUID | None,
        assignment_id: UUID,
        submission_text: str | None = None,
        file_url: str | None = None,
    ) -> AssignmentSubmission:
        if student_id is None:
            raise Unauthenticated()
        text = submission_text.strip() if submission_text else None
        url = file_url.strip() if file_url else None
        if not text and not url:
            raise ValidationError("submission_text or file_url is required")

        async with self._uow_factory() as uow:
            assignment = await uow.catalog.get_assignment(assignment_id)
            if assignment is None:
                raise NotFound("assignment", assignment_id)
            if (
                await uow.progress.get_enrollment(student_id, assignment.course_id)
                is None
            ):
                logger.warning(
                    "Submission rejected: student=%s not enrolled in course=%s",
                    student_id,
                    assignment.course_id,
                )
                raise NotEnrolled(student_id, assignment.course_id)

            existing = await uow.submissions.get_for_student(
                student_id, assignment_id, for_update=True
            )
            if existing is not None and existing.is_graded:
                SUBMISSION_EVENTS.labels(event="rejected_locked").inc()
                logger.warning(
                    "Submission rejected: submission=%s already graded",
                    existing.id,
                )
                raise SubmissionLocked("submission has already been graded")

            base = existing or AssignmentSubmission.new(
                student_id=student_id, assignment_id=assignment_id
            )
            submission = replace(
                base,
                status="submitted",
                submission_text=text,
                file_url=url,
                submitted_at=self._clock(),
            )
            await uow.submissions.save(submission)

        event = "resubmitted" if existing is not None else "submitted"
        SUBMISSION_EVENTS.labels(event=event).inc()
        logger.info(
            "Assignment %s student=%s assignment=%s submission=%s",
            event,
            student_id,
            assignment_id,
            submission.id,
        )
        return submission

    async def grade(
        self,
        instructor_id: UUID | None,
        submission_id: UUID,
        score: int,
        feedback: str | None = None,
    ) -> AssignmentSubmission:
        if instructor_id is None:
            raise Unauthenticated()

        async with self._uow_factory() as uow:
            submission = await uow.submissions.get(submission_id, for_update=True)
            if submission is None:
                raise NotFound("submission", submission_id)
            assignment = await uow.catalog.get_assignment(submission.assignment_id)
            if assignment is None:
                raise NotFound("assignment", submission.assignment_id)
            course = await uow.catalog.get_course(assignment.course_id)
            if course is None or course.instructor_id != instructor_id:
                logger.warning(
                    "Grade rejected: user=%s is not the instructor of course=%s",
                    instructor_id,
                    assignment.course_id,
                )
                raise PermissionDenied("only the course instructor may grade")

            clamped = max(0, min(score, assignment.max_points))
            if clamped != score:
                logger.info(
                    "Score %d clamped to %d (max_points=%d)",
                    score,
                    clamped,
                    assignment.max_points,
                )
            graded = replace(
                submission,
                status="graded",
                score=clamped,
                feedback=feedback,
                graded_at=self._clock(),
                graded_by=instructor_id,
            )
            await uow.submissions.save(graded)

        SUBMISSION_EVENTS.labels(event="graded").inc()
        logger.info(
            "Submission graded submission=%s score=%d/%d by=%s",
            submission_id,
            clamped,
            assignment.max_points,
            instructor_id,
        )
        await send_best_effort(
            self._dispatcher,
            Notification(
                user_id=graded.student_id,
                type="assignment_feedback",
                title="Assignment graded",
                message=(
                    f'Your submission for "{assignment.title}" was graded: '
                    f"{clamped}/{assignment.max_points}."
                ),
                link=f"/student/assignments/{assignment.id}",
            ),
        )
        return graded

    async def get_submission(
        self, student_id: UUID | None, assignment_id: UUID
    ) -> AssignmentSubmission | None:
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            if await uow.catalog.get_assignment(assignment_id) is None:
                raise NotFound("assignment", assignment_id)
            return await uow.submissions.get_for_student(student_id, assignment_id)


submission_tracker = SubmissionTracker()
