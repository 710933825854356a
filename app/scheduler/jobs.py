"""
app/scheduler/jobs.py

APScheduler-based maintenance scheduler for the content import pipeline.

Schedule
--------
  sweep_stalled_imports: every IMPORT_STALLED_SWEEP_INTERVAL_MINUTES (default 5)

Batches are processed in-process by background tasks. If the process dies
mid-import the batch would stay in ``processing`` forever; the sweep marks
such batches ``failed`` once they have not been saved for
IMPORT_STALLED_AFTER_MINUTES, so their created records can be rolled back.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import get_content_import_settings
from app.services.content_import_service import get_content_import_service
from db.session import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def sweep_stalled_imports() -> None:
    """
    Fail batches stuck in processing past the stall threshold.
    """
    logger.info("Scheduler: sweep_stalled_imports starting")
    with _session_scope() as db:
        try:
            marked = get_content_import_service().fail_stalled_imports(db)
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: sweep_stalled_imports failed: %s", exc)
            return
    logger.info("Scheduler: sweep_stalled_imports complete marked=%s", marked)


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = get_content_import_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        sweep_stalled_imports,
        trigger="interval",
        minutes=settings.stalled_sweep_interval_minutes,
        id="sweep_stalled_imports",
        name="Stalled import sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )

    return scheduler
