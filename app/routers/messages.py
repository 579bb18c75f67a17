from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.message import GroupMessage
from app.models.message_read import GroupMessageRead
from app.models.user import User
from app.routers.deps import get_current_user, get_store
from app.schemas.message import MessageRead, MessageReadReceipt
from app.services.groups import GroupNotFoundError, get_active_group, is_group_member
from app.services.messages import list_messages, mark_read, post_message, read_upload
from app.services.storage import StoreError

router = APIRouter(prefix="/groups/{group_id}/messages", tags=["messages"])


def _require_member(db: Session, group_id: str, user: User) -> None:
    try:
        get_active_group(db, group_id)
    except GroupNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if not is_group_member(db, group_id, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this group")


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    group_id: str,
    body: str | None = Form(default=None),
    reply_to_id: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    store=Depends(get_store),
    current_user: User = Depends(get_current_user),
) -> GroupMessage:
    _require_member(db, group_id, current_user)
    file_data = await read_upload(file) if file is not None else None
    try:
        return post_message(
            db,
            store,
            group_id,
            current_user.id,
            body=body,
            file_name=file.filename if file is not None else None,
            file_data=file_data,
            content_type=file.content_type if file is not None else None,
            reply_to_id=reply_to_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Unable to store file") from exc


@router.get("", response_model=list[MessageRead])
def get_messages(
    group_id: str,
    limit: int = Query(50, ge=1, le=200),
    before_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[GroupMessage]:
    _require_member(db, group_id, current_user)
    return list_messages(db, group_id, limit=limit, before_id=before_id)


@router.post("/{message_id}/read", response_model=MessageReadReceipt)
def read_message(
    group_id: str,
    message_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GroupMessageRead:
    _require_member(db, group_id, current_user)
    try:
        return mark_read(db, group_id, message_id, current_user.id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
