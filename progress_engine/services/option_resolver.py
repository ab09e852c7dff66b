"""Per-question choice of option storage generation.

Quiz options are being migrated from ``quiz_options`` (legacy) to
``quiz_question_options`` (current).  For any one question exactly one
generation holds rows.  The resolver asks the current store first and
falls back to the legacy store only when the current one is empty.

One resolver is created per display or grading operation.  Results are
memoised, so the options shown and the options graded come from the same
lookup and a question never mixes rows from both generations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from progress_engine.core.metrics import OPTION_RESOLUTIONS
from progress_engine.models.quiz import ResolvedOptions
from progress_engine.repos.catalog_repo import CatalogRepo

logger = logging.getLogger(__name__)


class OptionResolver:
    def __init__(self, catalog: CatalogRepo) -> None:
        self._catalog = catalog
        self._resolved: dict[UUID, ResolvedOptions] = {}

    async def resolve(self, question_id: UUID) -> ResolvedOptions:
        cached = self._resolved.get(question_id)
        if cached is not None:
            return cached

        current = await self._catalog.list_current_options(question_id)
        if current:
            resolved = ResolvedOptions(question_id, "current", tuple(current))
        else:
            legacy = await self._catalog.list_legacy_options(question_id)
            resolved = ResolvedOptions(question_id, "legacy", tuple(legacy))
            if legacy:
                logger.debug(
                    "Question %s resolved from legacy options (%d rows)",
                    question_id,
                    len(legacy),
                )

        OPTION_RESOLUTIONS.labels(source=resolved.source).inc()
        self._resolved[question_id] = resolved
        return resolved

    async def resolve_many(
        self, question_ids: Iterable[UUID]
    ) -> dict[UUID, ResolvedOptions]:
        return {qid: await self.resolve(qid) for qid in question_ids}
