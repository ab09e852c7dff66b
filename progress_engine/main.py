from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from progress_engine.api.assignments import router as assignments_router
from progress_engine.api.courses import router as courses_router
from progress_engine.api.health import router as health_router
from progress_engine.api.lessons import router as lessons_router
from progress_engine.api.metrics_endpoint import router as metrics_router
from progress_engine.api.quizzes import router as quizzes_router
from progress_engine.core.config import SETTINGS
from progress_engine.core.logging import setup_logging
from progress_engine.db.engine import async_session_factory, lifespan_db
from progress_engine.db.redis import lifespan_redis
from progress_engine.db.seed import seed_sample_catalog
from progress_engine.db.unit_of_work import memory_store
from progress_engine.middleware.metrics import MetricsMiddleware
from progress_engine.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="progress-engine",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(lessons_router)
app.include_router(quizzes_router)
app.include_router(assignments_router)

if SETTINGS.is_dev and async_session_factory is None:
    seed_sample_catalog(memory_store.catalog)

logger.info(
    "progress-engine started  env=%s log_level=%s port=%d store=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "postgres" if async_session_factory is not None else "memory",
    "on" if SETTINGS.is_dev else "off",
)
