from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from progress_engine.api.dependencies import CurrentUserId
from progress_engine.api.errors import to_http
from progress_engine.core.errors import EngineError
from progress_engine.models.assignment import AssignmentSubmission
from progress_engine.services.submission_tracker import submission_tracker

router = APIRouter(prefix="/v1", tags=["assignments"])


class SubmissionIn(BaseModel):
    submission_text: str | None = None
    file_url: str | None = None


class GradeIn(BaseModel):
    score: int
    feedback: str | None = None


class SubmissionOut(BaseModel):
    id: UUID
    student_id: UUID
    assignment_id: UUID
    status: str
    submission_text: str | None
    file_url: str | None
    score: int | None
    feedback: str | None
    submitted_at: int | None
    graded_at: int | None
    graded_by: UUID | None

    @classmethod
    def of(cls, s: AssignmentSubmission) -> SubmissionOut:
        return cls(
            id=s.id,
            student_id=s.student_id,
            assignment_id=s.assignment_id,
            status=s.status,
            submission_text=s.submission_text,
            file_url=s.file_url,
            score=s.score,
            feedback=s.feedback,
            submitted_at=s.submitted_at,
            graded_at=s.graded_at,
            graded_by=s.graded_by,
        )


@router.put("/assignments/{assignment_id}/submission", response_model=SubmissionOut)
async def submit(
    assignment_id: UUID, body: SubmissionIn, student_id: CurrentUserId
) -> SubmissionOut:
    try:
        submission = await submission_tracker.submit(
            student_id, assignment_id, body.submission_text, body.file_url
        )
    except EngineError as e:
        raise to_http(e) from None
    return SubmissionOut.of(submission)


@router.get("/assignments/{assignment_id}/submission", response_model=SubmissionOut)
async def get_submission(
    assignment_id: UUID, student_id: CurrentUserId
) -> SubmissionOut:
    try:
        submission = await submission_tracker.get_submission(student_id, assignment_id)
    except EngineError as e:
        raise to_http(e) from None
    if submission is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No submission yet"
        )
    return SubmissionOut.of(submission)


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionOut)
async def grade(
    submission_id: UUID, body: GradeIn, instructor_id: CurrentUserId
) -> SubmissionOut:
    try:
        graded = await submission_tracker.grade(
            instructor_id, submission_id, body.score, body.feedback
        )
    except EngineError as e:
        raise to_http(e) from None
    return SubmissionOut.of(graded)
