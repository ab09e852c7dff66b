"""Enrollment and course progress endpoints.

  POST /v1/courses/{course_id}/enroll                -> 201 Enrollment
  GET  /v1/courses/{course_id}/progress              -> read-through cached
  POST /v1/courses/{course_id}/progress/recalculate  -> recompute from records
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel

from progress_engine.api.dependencies import CurrentUserId
from progress_engine.api.errors import to_http
from progress_engine.core.errors import EngineError
from progress_engine.models.course import Enrollment
from progress_engine.services.enrollment import enrollment_service
from progress_engine.services.progress_recalculator import progress_recalculator

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class EnrollmentOut(BaseModel):
    student_id: UUID
    course_id: UUID
    enrolled_at: int
    progress_percentage: int
    completed_at: int | None

    @classmethod
    def of(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            enrolled_at=enrollment.enrolled_at,
            progress_percentage=enrollment.progress_percentage,
            completed_at=enrollment.completed_at,
        )


class RecalculateOut(BaseModel):
    course_id: UUID
    progress_percentage: int


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(course_id: UUID, student_id: CurrentUserId) -> EnrollmentOut:
    try:
        enrollment = await enrollment_service.enroll(student_id, course_id)
    except EngineError as e:
        raise to_http(e) from None
    return EnrollmentOut.of(enrollment)


@router.get("/{course_id}/progress", response_model=EnrollmentOut)
async def get_progress(course_id: UUID, student_id: CurrentUserId) -> EnrollmentOut:
    try:
        enrollment = await enrollment_service.get_progress(student_id, course_id)
    except EngineError as e:
        raise to_http(e) from None
    return EnrollmentOut.of(enrollment)


@router.post("/{course_id}/progress/recalculate", response_model=RecalculateOut)
async def recalculate(course_id: UUID, student_id: CurrentUserId) -> RecalculateOut:
    try:
        pct = await progress_recalculator.recalculate(student_id, course_id)
    except EngineError as e:
        raise to_http(e) from None
    return RecalculateOut(course_id=course_id, progress_percentage=pct)
