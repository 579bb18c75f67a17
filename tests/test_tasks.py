import json
from datetime import timedelta

from celery.exceptions import SoftTimeLimitExceeded
from click.testing import CliRunner
from sqlalchemy import func, select

from app.cli import cli
from app.core.config import get_settings
from app.models.cleanup_run import CleanupRun
from app.models.common import utcnow
from app.models.message import GroupMessage
from app.services import retention
from app.workers import tasks
from app.workers.celery_app import celery_app


def _seed(db, group, age_days: int) -> str:
    message = GroupMessage(group_id=group.id, user_id=group.created_by, body="exam tips", created_at=utcnow() - timedelta(days=age_days))
    db.add(message)
    db.commit()
    return message.id


def test_beat_schedules_daily_cleanup():
    entry = celery_app.conf.beat_schedule["retention-cleanup-daily"]
    assert entry["task"] == tasks.retention_cleanup_job.name


def test_retention_job_returns_counts(db, group):
    _seed(db, group, 20)
    kept = _seed(db, group, 2)

    result = tasks.retention_cleanup_job()

    assert result == {"messages_deleted": 1, "attachments_deleted": 0, "error": None}
    assert db.scalars(select(GroupMessage.id)).all() == [kept]


def test_retention_job_never_raises(db, monkeypatch):
    def _explode(session):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(tasks, "run_retention_cleanup", _explode)

    result = tasks.retention_cleanup_job()

    assert result["error"] == "unexpected error: database unreachable"
    run = db.scalar(select(CleanupRun))
    assert run.status == "failed"


def test_cli_run_and_history(db, group):
    _seed(db, group, 30)
    runner = CliRunner()

    run = runner.invoke(cli, ["cleanup", "run"])
    assert run.exit_code == 0, run.output
    payload = json.loads(run.output.strip().splitlines()[-1])
    assert payload["messages_deleted"] == 1
    assert payload["status"] == "succeeded"

    history = runner.invoke(cli, ["cleanup", "runs", "--limit", "5"])
    assert history.exit_code == 0
    assert "messages=1" in history.output
    assert db.scalar(select(func.count()).select_from(CleanupRun)) == 1


def test_cli_preview(db, group):
    _seed(db, group, 20)
    _seed(db, group, 12)

    result = CliRunner().invoke(cli, ["cleanup", "preview"])

    assert result.exit_code == 0
    assert "messages to delete: 1" in result.output


def test_worker_time_limit_is_recorded(db, store, group, make_message, monkeypatch):
    message_id = make_message(timedelta(days=20), with_file=True)
    store.failures[f"groups/{group.id}/{message_id}.pdf"] = [SoftTimeLimitExceeded()]
    monkeypatch.setattr(retention, "get_object_store", lambda: store)

    result = tasks.retention_cleanup_job()

    assert result["messages_deleted"] == 0
    assert result["error"] == f"worker time limit of {tasks.SOFT_TIME_LIMIT}s exceeded"
    run = db.scalar(select(CleanupRun))
    assert run.status == "failed"
    assert run.error == result["error"]
    assert db.get(GroupMessage, message_id) is not None


def test_cli_preview_reports_bad_window(monkeypatch):
    monkeypatch.setattr(get_settings(), "group_message_retention_days", 0)

    result = CliRunner().invoke(cli, ["cleanup", "preview"])

    assert result.exit_code == 1
    assert "Retention window must be a positive number of days" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
