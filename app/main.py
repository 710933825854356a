"""
app/main.py

FastAPI application factory for the content import service.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Refuse to start on a missing or invalid environment, before any database
    connection is attempted.
    """

    from app.config import environment_problems

    problems = environment_problems()
    if problems:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {problem}" for problem in problems)
        )


def _configure_logging() -> None:
    from app.config import get_service_settings

    logging.basicConfig(
        level=getattr(logging, get_service_settings().log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _verify_database() -> None:
    """
    Check connectivity, then check that every import table exists.
    Migrations are never applied from here.
    """

    from sqlalchemy import inspect, text

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - set(inspect(engine).get_table_names()))
    if missing:
        logger.critical(
            "Import tables missing from the database: %s. Run 'alembic upgrade head' and restart.",
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing tables ({', '.join(missing)}). Run migrations and restart.")
    logger.info("Database schema validated")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _verify_database()

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        # Running sweeps finish before the engine goes away.
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shut down")


def create_app(*, validate_env: bool = True, lifespan: bool = True) -> FastAPI:
    """
    Build the application.

    Tests pass validate_env=False and lifespan=False and override get_db.
    """

    if validate_env:
        _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Content Import API",
        version="1.0.0",
        lifespan=_lifespan if lifespan else None,
    )

    from app.api.routers import content_import_router, record_audit_router

    application.include_router(content_import_router)
    application.include_router(record_audit_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


def __getattr__(name: str) -> FastAPI:
    # `uvicorn app.main:app` builds the application on first access, so
    # importing this module needs no configured environment.
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
