import logging

from celery.exceptions import SoftTimeLimitExceeded

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.retention import record_failed_run, run_retention_cleanup
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)
settings = get_settings()

# The sweeper enforces its own deadline; the worker limits only catch a hung call.
SOFT_TIME_LIMIT = int(settings.retention_run_timeout_seconds) + 60
HARD_TIME_LIMIT = SOFT_TIME_LIMIT + 30


def _failure(error: str) -> dict:
    return {"messages_deleted": 0, "attachments_deleted": 0, "error": error}


@celery_app.task(name="app.workers.tasks.retention_cleanup_job", soft_time_limit=SOFT_TIME_LIMIT, time_limit=HARD_TIME_LIMIT)
def retention_cleanup_job() -> dict:
    db = SessionLocal()
    try:
        return run_retention_cleanup(db).as_dict()
    except SoftTimeLimitExceeded:
        error = f"worker time limit of {SOFT_TIME_LIMIT}s exceeded"
        logger.error("retention_cleanup_job_time_limit", extra={"limit": SOFT_TIME_LIMIT})
        record_failed_run(db, error)
        return _failure(error)
    except Exception as exc:  # noqa: BLE001
        logger.exception("retention_cleanup_job_failed", extra={"error": str(exc)})
        record_failed_run(db, f"unexpected error: {exc}")
        return _failure(f"unexpected error: {exc}")
    finally:
        db.close()
