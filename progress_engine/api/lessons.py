from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from progress_engine.api.dependencies import CurrentUserId
from progress_engine.api.errors import to_http
from progress_engine.core.errors import EngineError
from progress_engine.services.completion_recorder import completion_recorder

router = APIRouter(prefix="/v1/lessons", tags=["lessons"])


class CompletionIn(BaseModel):
    completed: bool = True


class CompletionOut(BaseModel):
    lesson_id: UUID
    course_id: UUID
    completed: bool
    completed_at: int | None
    progress_percentage: int


@router.post("/{lesson_id}/completion", response_model=CompletionOut)
async def record_completion(
    lesson_id: UUID,
    student_id: CurrentUserId,
    body: CompletionIn | None = None,
) -> CompletionOut:
    completed = body.completed if body is not None else True
    try:
        result = await completion_recorder.record_completion(
            student_id, lesson_id, completed
        )
    except EngineError as e:
        raise to_http(e) from None
    return CompletionOut(
        lesson_id=result.lesson_id,
        course_id=result.course_id,
        completed=result.completed,
        completed_at=result.completed_at,
        progress_percentage=result.progress_percentage,
    )
