"""Transaction boundary for every engine operation.

A unit of work hands a service one consistent set of repos.  Everything
written through it either commits together or not at all.

Two implementations, chosen at import time like every other backend:

  - PostgreSQL: one AsyncSession per unit of work inside
    ``session.begin()``.  SQLAlchemy errors are rolled back and re-raised
    as ``PersistenceError``.
  - In-memory: a single process-wide store.  An asyncio.Lock serializes
    units of work, and a snapshot taken on entry is restored if the body
    raises.

Units of work must not be nested: open one per operation and pass it
down to helpers that need it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from progress_engine.core.errors import PersistenceError
from progress_engine.db.engine import async_session_factory
from progress_engine.repos.attempt_repo import AttemptRepo, InMemoryAttemptRepo
from progress_engine.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from progress_engine.repos.pg_attempt_repo import PgAttemptRepo
from progress_engine.repos.pg_catalog_repo import PgCatalogRepo
from progress_engine.repos.pg_progress_repo import PgProgressRepo
from progress_engine.repos.pg_submission_repo import PgSubmissionRepo
from progress_engine.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from progress_engine.repos.submission_repo import (
    InMemorySubmissionRepo,
    SubmissionRepo,
)

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    catalog: CatalogRepo
    progress: ProgressRepo
    attempts: AttemptRepo
    submissions: SubmissionRepo


UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryStore:
    """Process-wide in-memory tables plus the lock that serializes writers."""

    def __init__(self) -> None:
        self.catalog = InMemoryCatalogRepo()
        self.progress = InMemoryProgressRepo()
        self.attempts = InMemoryAttemptRepo()
        self.submissions = InMemorySubmissionRepo()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        async with self._lock:
            state = (
                self.progress.snapshot(),
                self.attempts.snapshot(),
                self.submissions.snapshot(),
            )
            try:
                yield InMemoryUnitOfWork(self)
            except BaseException:
                self.progress.restore(state[0])
                self.attempts.restore(state[1])
                self.submissions.restore(state[2])
                raise

    def reset(self) -> None:
        """Drop all data.  Tests call this between cases."""
        self.catalog.clear()
        self.progress.clear()
        self.attempts.clear()
        self.submissions.clear()
        # A fresh lock: asyncio.run() gives each test its own event loop.
        self._lock = asyncio.Lock()


class InMemoryUnitOfWork:
    def __init__(self, store: InMemoryStore) -> None:
        self.catalog: CatalogRepo = store.catalog
        self.progress: ProgressRepo = store.progress
        self.attempts: AttemptRepo = store.attempts
        self.submissions: SubmissionRepo = store.submissions


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


class PgUnitOfWork:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.catalog: CatalogRepo = PgCatalogRepo(session)
        self.progress: ProgressRepo = PgProgressRepo(session)
        self.attempts: AttemptRepo = PgAttemptRepo(session)
        self.submissions: SubmissionRepo = PgSubmissionRepo(session)


@asynccontextmanager
async def pg_unit_of_work(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[UnitOfWork]:
    try:
        async with session_factory() as session, session.begin():
            yield PgUnitOfWork(session)
    except SQLAlchemyError as exc:
        logger.exception("Transaction rolled back")
        raise PersistenceError("the store rejected the write") from exc


# ---------------------------------------------------------------------------
# Module-level selection
# ---------------------------------------------------------------------------

memory_store = InMemoryStore()


def unit_of_work() -> AbstractAsyncContextManager[UnitOfWork]:
    """Open a unit of work against the configured store."""
    if async_session_factory is not None:
        return pg_unit_of_work(async_session_factory)
    return memory_store.transaction()
