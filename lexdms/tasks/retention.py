import logging
import time

from lexdms.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="lexdms.tasks.retention.archive_expired_retentions", ignore_result=True
)
def archive_expired_retentions() -> None:
    """Periodic task to archive completed documents past their retention expiry.

    Stops between documents once the time budget is spent; the next run
    picks up whatever is left.
    """
    from lexdms.config import settings
    from lexdms.db import SessionLocal
    from lexdms.services.ecm_archive import archive_expired_retentions as sweep

    deadline = time.monotonic() + settings.retention_sweep_time_budget_seconds
    db = SessionLocal()
    try:
        result = sweep(db, should_stop=lambda: time.monotonic() >= deadline)
        logger.info(
            "Retention sweep finished: %d archived, %d skipped, %d failed%s",
            result.archived,
            result.skipped,
            result.errors,
            " (stopped early)" if result.stopped else "",
        )
    except Exception as e:
        logger.exception("Failed to archive expired retentions: %s", e)
    finally:
        db.close()
