"""Retention sweep for group chat history.

Messages strictly older than ``now - retention window`` are deleted one at a
time. Each message is its own unit of work: its attachment blob is removed
from the object store first, then the row is deleted and committed. When the
blob cannot be removed the row is left in place so the next run can retry it.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.attachment import Attachment
from app.models.cleanup_run import CleanupRun
from app.models.common import utcnow
from app.models.message import GroupMessage
from app.services.storage import StoreError, TransientStoreError, get_object_store

logger = logging.getLogger(__name__)

STATUS_SUCCEEDED = "succeeded"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"

MAX_REPORTED_ERRORS = 20
MAX_RECENT_RUNS = 200


class ConfigurationError(Exception):
    """Retention settings would make the sweep unsafe to run."""


class RunTimedOut(Exception):
    pass


class ItemSkipped(Exception):
    """One message could not be swept; the run carries on without it."""


@dataclass(slots=True)
class CleanupResult:
    messages_deleted: int = 0
    attachments_deleted: int = 0
    error: str | None = None
    status: str = STATUS_SUCCEEDED
    cutoff_at: datetime | None = None
    run_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "messages_deleted": self.messages_deleted,
            "attachments_deleted": self.attachments_deleted,
            "error": self.error,
        }


@dataclass(slots=True)
class PreviewItem:
    message_id: str
    group_id: str
    message_type: str
    created_at: datetime
    status: str
    days_remaining: int


@dataclass(slots=True)
class RetentionPreview:
    cutoff_at: datetime
    horizon_at: datetime
    will_delete_messages: int = 0
    will_delete_files: int = 0
    items: list[PreviewItem] = field(default_factory=list)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def retention_window(days: int | None) -> timedelta:
    if days is None or days <= 0:
        raise ConfigurationError(f"Retention window must be a positive number of days, got {days!r}")
    return timedelta(days=days)


class RetentionSweeper:
    def __init__(
        self,
        db: Session,
        store,
        *,
        retention_days: int | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.db = db
        self.store = store
        self.retention_days = settings.group_message_retention_days if retention_days is None else retention_days
        self.timeout_seconds = settings.retention_run_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.clock = clock
        self.monotonic = monotonic

    def run_cleanup(self) -> CleanupResult:
        run_at = self.clock()
        result = CleanupResult()
        errors: list[str] = []
        try:
            window = retention_window(self.retention_days)
            if self.timeout_seconds is None or self.timeout_seconds <= 0:
                raise ConfigurationError(f"Run timeout must be positive, got {self.timeout_seconds!r}")
            deadline = self.monotonic() + self.timeout_seconds
            cutoff = run_at - window
            result.cutoff_at = cutoff

            candidates = self._candidates(cutoff)
            logger.info(
                "retention_sweep_started",
                extra={"cutoff": cutoff.isoformat(), "candidates": len(candidates)},
            )
            for message_id, storage_key in candidates:
                if self.monotonic() >= deadline:
                    raise RunTimedOut(
                        f"run timed out after {self.timeout_seconds}s with "
                        f"{result.messages_deleted} of {len(candidates)} messages deleted"
                    )
                try:
                    self._sweep_message(message_id, storage_key, cutoff, result)
                except ItemSkipped as exc:
                    logger.warning("retention_item_skipped", extra={"message_id": message_id, "error": str(exc)})
                    errors.append(str(exc))
        except ConfigurationError as exc:
            logger.error("retention_sweep_misconfigured", extra={"error": str(exc)})
            errors.append(f"configuration error: {exc}")
            result.status = STATUS_FAILED
        except RunTimedOut as exc:
            logger.error("retention_sweep_timed_out", extra={"error": str(exc)})
            errors.append(str(exc))
            result.status = STATUS_FAILED
        except SoftTimeLimitExceeded:
            # The worker records the run; see app.workers.tasks.
            self._rollback()
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("retention_sweep_failed", extra={"error": str(exc)})
            self._rollback()
            errors.append(f"unexpected error: {exc}")
            result.status = STATUS_FAILED
        else:
            result.status = STATUS_PARTIAL if errors else STATUS_SUCCEEDED

        result.error = summarize_errors(errors)
        self._record_run(run_at, result)
        logger.info(
            "retention_sweep_finished",
            extra={
                "status": result.status,
                "messages_deleted": result.messages_deleted,
                "attachments_deleted": result.attachments_deleted,
            },
        )
        return result

    def _candidates(self, cutoff: datetime) -> list[tuple[str, str | None]]:
        stmt = (
            select(GroupMessage.id, Attachment.storage_key)
            .outerjoin(Attachment, Attachment.message_id == GroupMessage.id)
            .where(GroupMessage.created_at < cutoff)
            .order_by(GroupMessage.created_at.asc())
        )
        rows = self.db.execute(stmt).all()
        # Release the read transaction before per-message commits start.
        self.db.rollback()
        return [(row[0], row[1]) for row in rows]

    def _sweep_message(self, message_id: str, storage_key: str | None, cutoff: datetime, result: CleanupResult) -> None:
        if storage_key is not None:
            self._attempt(lambda: self.store.delete_blob(storage_key), f"message {message_id}: blob {storage_key}")

        deleted = self._attempt(lambda: self._delete_row(message_id, cutoff), f"message {message_id}: row")
        if not deleted:
            logger.debug("retention_message_already_gone", extra={"message_id": message_id})
            return
        result.messages_deleted += 1
        if storage_key is not None:
            result.attachments_deleted += 1

    def _delete_row(self, message_id: str, cutoff: datetime) -> bool:
        # Re-apply the cutoff so a row can never be deleted if it is not old enough.
        stmt = (
            delete(GroupMessage)
            .where(GroupMessage.id == message_id, GroupMessage.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        outcome = self.db.execute(stmt)
        self.db.commit()
        return outcome.rowcount > 0

    def _attempt(self, operation: Callable[[], Any], label: str) -> Any:
        for attempt in (1, 2):
            try:
                return operation()
            except (TransientStoreError, OperationalError) as exc:
                self._rollback()
                if attempt == 2:
                    raise ItemSkipped(f"{label} failed after retry: {exc}") from exc
                logger.warning("retention_item_retry", extra={"item": label, "error": str(exc)})
            except (StoreError, SQLAlchemyError) as exc:
                self._rollback()
                raise ItemSkipped(f"{label} failed: {exc}") from exc
            except SoftTimeLimitExceeded:
                raise
            except Exception as exc:  # noqa: BLE001
                self._rollback()
                logger.exception("retention_item_unexpected_error", extra={"item": label})
                raise ItemSkipped(f"{label} failed unexpectedly: {exc}") from exc
        return None

    def _record_run(self, run_at: datetime, result: CleanupResult) -> None:
        run = CleanupRun(
            run_at=run_at,
            cutoff_at=result.cutoff_at,
            status=result.status,
            messages_deleted=result.messages_deleted,
            attachments_deleted=result.attachments_deleted,
            error=result.error,
        )
        try:
            self.db.add(run)
            self.db.flush()
            run_id = run.id
            self.db.commit()
        except SQLAlchemyError:
            self._rollback()
            logger.exception("cleanup_run_not_recorded", extra={"status": result.status})
            return
        result.run_id = run_id

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("retention_rollback_failed")


def summarize_errors(errors: list[str]) -> str | None:
    if not errors:
        return None
    shown = errors[:MAX_REPORTED_ERRORS]
    summary = "; ".join(shown)
    if len(errors) > len(shown):
        summary += f"; and {len(errors) - len(shown)} more"
    return summary


def record_failed_run(db: Session, error: str) -> None:
    """Log a run that was abandoned from outside the sweeper, e.g. by a worker time limit."""
    try:
        db.rollback()
        db.add(CleanupRun(run_at=utcnow(), status=STATUS_FAILED, error=error))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("cleanup_run_not_recorded", extra={"status": STATUS_FAILED})


def run_retention_cleanup(db: Session, store=None) -> CleanupResult:
    return RetentionSweeper(db, store or get_object_store()).run_cleanup()


def recent_cleanup_runs(db: Session, limit: int = 20) -> list[CleanupRun]:
    limit = max(1, min(limit, MAX_RECENT_RUNS))
    stmt = select(CleanupRun).order_by(CleanupRun.run_at.desc()).limit(limit)
    return list(db.scalars(stmt).all())


def preview_retention(
    db: Session,
    now: datetime | None = None,
    retention_days: int | None = None,
    warning_days: int | None = None,
) -> RetentionPreview:
    """List messages past the cutoff or close enough to it to warn about."""
    settings = get_settings()
    now = now or utcnow()
    window = retention_window(settings.group_message_retention_days if retention_days is None else retention_days)
    warning = timedelta(days=max(0, settings.retention_preview_days if warning_days is None else warning_days))
    cutoff = now - window
    horizon = cutoff + warning

    stmt = (
        select(GroupMessage.id, GroupMessage.group_id, GroupMessage.message_type, GroupMessage.created_at)
        .where(GroupMessage.created_at < horizon)
        .order_by(GroupMessage.created_at.asc())
    )
    preview = RetentionPreview(cutoff_at=cutoff, horizon_at=horizon)
    for message_id, group_id, message_type, created_at in db.execute(stmt).all():
        created_at = as_utc(created_at)
        remaining = created_at - cutoff
        if created_at < cutoff:
            status, days_remaining = "will_be_deleted", 0
            preview.will_delete_messages += 1
            if message_type == "file":
                preview.will_delete_files += 1
        else:
            status = "expiring_soon"
            days_remaining = max(1, math.ceil(remaining / timedelta(days=1)))
        preview.items.append(
            PreviewItem(
                message_id=message_id,
                group_id=group_id,
                message_type=message_type,
                created_at=created_at,
                status=status,
                days_remaining=days_remaining,
            )
        )
    return preview
