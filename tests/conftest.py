import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_DIR"] = "./test-storage"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GROUP_MESSAGE_RETENTION_DAYS"] = "14"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import create_app
from app.models.attachment import Attachment
from app.models.group import ClassGroup
from app.models.group_member import GroupMember
from app.models.message import GroupMessage
from app.models.user import User
from app.routers.deps import get_store
from app.services.storage import DeleteOutcome

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


class FakeObjectStore:
    """In-memory store; queue exceptions per key in ``failures`` to inject errors."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.delete_calls: list[str] = []
        self.failures: dict[str, list[Exception]] = {}

    def put_blob(self, key: str, data: bytes, content_type: str | None = None) -> None:
        self.blobs[key] = data

    def delete_blob(self, key: str) -> DeleteOutcome:
        self.delete_calls.append(key)
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)
        if self.blobs.pop(key, None) is None:
            return DeleteOutcome.NOT_FOUND
        return DeleteOutcome.DELETED


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    path = Path("test.db")
    if path.exists():
        path.unlink()
    shutil.rmtree("test-storage", ignore_errors=True)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def store():
    return FakeObjectStore()


@pytest.fixture()
def client(store):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make_user(is_admin: bool = False) -> User:
        counter["n"] += 1
        user = User(email=f"student{counter['n']}@example.com", password_hash="unused", is_admin=is_admin)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def group(db, make_user):
    creator = make_user()
    group = ClassGroup(name="CSE 3A Networks", year=3, section="A", subject="Networks", created_by=creator.id, member_count=1)
    db.add(group)
    db.flush()
    db.add(GroupMember(group_id=group.id, user_id=creator.id, role="admin"))
    db.commit()
    db.refresh(group)
    return group


@pytest.fixture()
def make_message(db, store, group, now):
    def _make_message(age: timedelta, with_file: bool = False, **kwargs) -> str:
        message = GroupMessage(
            group_id=group.id,
            user_id=group.created_by,
            body=kwargs.get("body", "see attached" if with_file else "hello"),
            message_type="file" if with_file else "text",
            reply_to_id=kwargs.get("reply_to_id"),
            created_at=now - age,
        )
        db.add(message)
        db.flush()
        if with_file:
            key = f"groups/{group.id}/{message.id}.pdf"
            store.put_blob(key, b"%PDF-1.4")
            db.add(
                Attachment(
                    message_id=message.id,
                    storage_key=key,
                    file_name="notes.pdf",
                    file_size=8,
                    mime_type="application/pdf",
                )
            )
        db.commit()
        return message.id

    return _make_message
