"""Translation of domain errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException

from progress_engine.core.errors import EngineError, http_status_for

logger = logging.getLogger(__name__)


def to_http(exc: EngineError) -> HTTPException:
    """Map an EngineError to an HTTPException and log the rejection.

    Usage::

        try:
            ...
        except EngineError as e:
            raise to_http(e) from None
    """
    status_code = http_status_for(exc)
    logger.warning(
        "Request rejected: %s (%d) %s", type(exc).__name__, status_code, exc
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
