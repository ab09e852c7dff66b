"""Domain error taxonomy for the progress & assessment engine.

Services raise these; routers translate them into HTTP responses via
``http_status_for``.  Nothing in here knows about FastAPI.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class Unauthenticated(EngineError):
    def __init__(self, message: str = "caller identity is required") -> None:
        super().__init__(message)


class PermissionDenied(EngineError):
    pass


class NotEnrolled(PermissionDenied):
    def __init__(self, student_id: object, course_id: object) -> None:
        super().__init__(f"student {student_id} is not enrolled in course {course_id}")
        self.student_id = student_id
        self.course_id = course_id


class NotFound(EngineError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(EngineError):
    pass


class Conflict(EngineError):
    pass


class AlreadyEnrolled(Conflict):
    pass


class SubmissionLocked(Conflict):
    """A graded submission can no longer be changed by the student."""


class AttemptLimitReached(Conflict):
    pass


class TimeLimitExceeded(Conflict):
    pass


class IdempotencyConflict(Conflict):
    """A submission token was reused with a different set of answers."""


class PersistenceError(EngineError):
    """The store rejected a write; the whole operation was rolled back."""


_STATUS_BY_TYPE: tuple[tuple[type[EngineError], int], ...] = (
    (Unauthenticated, 401),
    (PermissionDenied, 403),
    (NotFound, 404),
    (ValidationError, 422),
    (Conflict, 409),
    (PersistenceError, 503),
)


def http_status_for(exc: EngineError) -> int:
    for error_type, code in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return code
    return 500
