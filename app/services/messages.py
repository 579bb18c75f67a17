import logging
import mimetypes

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.config import get_settings
from app.models.attachment import Attachment
from app.models.message import GroupMessage
from app.models.message_read import GroupMessageRead
from app.services.storage import StoreError, build_attachment_key

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


async def read_upload(file: UploadFile) -> bytes:
    settings = get_settings()
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    chunks: list[bytes] = []
    total = 0
    try:
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > max_bytes:
                raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File exceeds max size")
            chunks.append(chunk)
    finally:
        await file.close()
    if total == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    return b"".join(chunks)


def _discard_blob(store, key: str) -> None:
    try:
        store.delete_blob(key)
    except StoreError:
        logger.exception("orphaned_attachment_blob", extra={"key": key})


def post_message(
    db: Session,
    store,
    group_id: str,
    user_id: str,
    body: str | None = None,
    file_name: str | None = None,
    file_data: bytes | None = None,
    content_type: str | None = None,
    reply_to_id: str | None = None,
) -> GroupMessage:
    body = (body or "").strip() or None
    if body is None and file_data is None:
        raise ValueError("A message needs text or a file")
    if reply_to_id is not None:
        parent = db.scalar(select(GroupMessage.id).where(GroupMessage.id == reply_to_id, GroupMessage.group_id == group_id))
        if parent is None:
            raise ValueError("Replied-to message not found in this group")

    message = GroupMessage(
        group_id=group_id,
        user_id=user_id,
        body=body,
        message_type="file" if file_data is not None else "text",
        reply_to_id=reply_to_id,
    )
    db.add(message)
    db.flush()

    key = None
    if file_data is not None:
        key = build_attachment_key(group_id, file_name)
        mime_type = content_type or mimetypes.guess_type(file_name or "")[0] or "application/octet-stream"
        store.put_blob(key, file_data, mime_type)
        db.add(
            Attachment(
                message_id=message.id,
                storage_key=key,
                file_name=file_name or key.rsplit("/", 1)[-1],
                file_size=len(file_data),
                mime_type=mime_type,
            )
        )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if key is not None:
            _discard_blob(store, key)
        raise
    db.refresh(message)
    logger.info("group_message_posted", extra={"group_id": group_id, "message_id": message.id, "type": message.message_type})
    return message


def list_messages(db: Session, group_id: str, limit: int = 50, before_id: str | None = None) -> list[GroupMessage]:
    stmt = (
        select(GroupMessage)
        .options(selectinload(GroupMessage.attachment))
        .where(GroupMessage.group_id == group_id)
        .order_by(GroupMessage.created_at.desc())
        .limit(max(1, min(limit, 200)))
    )
    if before_id is not None:
        anchor = db.scalar(select(GroupMessage.created_at).where(GroupMessage.id == before_id))
        if anchor is not None:
            stmt = stmt.where(GroupMessage.created_at < anchor)
    return list(db.scalars(stmt).all())


def mark_read(db: Session, group_id: str, message_id: str, user_id: str) -> GroupMessageRead:
    message = db.scalar(select(GroupMessage).where(GroupMessage.id == message_id, GroupMessage.group_id == group_id))
    if message is None:
        raise LookupError("Message not found")
    existing = db.scalar(
        select(GroupMessageRead).where(GroupMessageRead.message_id == message_id, GroupMessageRead.user_id == user_id)
    )
    if existing is not None:
        return existing
    receipt = GroupMessageRead(message_id=message_id, user_id=user_id)
    db.add(receipt)
    db.commit()
    db.refresh(receipt)
    return receipt
