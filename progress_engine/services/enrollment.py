"""Enrollment creation and the cached progress read."""

from __future__ import annotations

import json
import logging
from uuid import UUID

from progress_engine.core.clock import Clock, utc_now
from progress_engine.core.errors import AlreadyEnrolled, NotFound, Unauthenticated
from progress_engine.core.metrics import CACHE_OPERATIONS
from progress_engine.db.unit_of_work import UnitOfWorkFactory, unit_of_work
from progress_engine.models.course import Enrollment
from progress_engine.services.cache import (
    PROGRESS_TTL_SECONDS,
    CacheService,
    cache_service,
    progress_key,
)

logger = logging.getLogger(__name__)


class EnrollmentService:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory = unit_of_work,
        cache: CacheService = cache_service,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._cache = cache
        self._clock = clock

    async def enroll(self, student_id: UUID | None, course_id: UUID) -> Enrollment:
        if student_id is None:
            raise Unauthenticated()
        async with self._uow_factory() as uow:
            if await uow.catalog.get_course(course_id) is None:
                raise NotFound("course", course_id)
            if await uow.progress.get_enrollment(student_id, course_id) is not None:
                logger.warning(
                    "Duplicate enrollment student=%s course=%s", student_id, course_id
                )
                raise AlreadyEnrolled(f"already enrolled in course {course_id}")
            enrollment = Enrollment(
                student_id=student_id, course_id=course_id, enrolled_at=self._clock()
            )
            await uow.progress.add_enrollment(enrollment)

        logger.info("Enrolled student=%s course=%s", student_id, course_id)
        return enrollment

    async def get_progress(
        self, student_id: UUID | None, course_id: UUID
    ) -> Enrollment:
        """Read-through: cache hit returns directly, miss loads and populates."""
        if student_id is None:
            raise Unauthenticated()
        key = progress_key(student_id, course_id)

        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return _decode(cached)
        CACHE_OPERATIONS.labels(operation="miss").inc()

        async with self._uow_factory() as uow:
            enrollment = await uow.progress.get_enrollment(student_id, course_id)
        if enrollment is None:
            raise NotFound("enrollment", f"{student_id}/{course_id}")

        await self._cache.set(key, _encode(enrollment), PROGRESS_TTL_SECONDS)
        return enrollment


def _encode(enrollment: Enrollment) -> str:
    return json.dumps(
        {
            "student_id": str(enrollment.student_id),
            "course_id": str(enrollment.course_id),
            "enrolled_at": enrollment.enrolled_at,
            "progress_percentage": enrollment.progress_percentage,
            "completed_at": enrollment.completed_at,
        }
    )


def _decode(raw: str) -> Enrollment:
    data = json.loads(raw)
    return Enrollment(
        student_id=UUID(data["student_id"]),
        course_id=UUID(data["course_id"]),
        enrolled_at=data["enrolled_at"],
        progress_percentage=data["progress_percentage"],
        completed_at=data["completed_at"],
    )


enrollment_service = EnrollmentService()
