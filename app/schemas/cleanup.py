from datetime import datetime

from pydantic import BaseModel


class CleanupResultRead(BaseModel):
    messages_deleted: int
    attachments_deleted: int
    error: str | None
    status: str
    run_id: str | None

    model_config = {"from_attributes": True}


class CleanupRunRead(BaseModel):
    id: str
    run_at: datetime
    cutoff_at: datetime | None
    status: str
    messages_deleted: int
    attachments_deleted: int
    error: str | None

    model_config = {"from_attributes": True}


class PreviewItemRead(BaseModel):
    message_id: str
    group_id: str
    message_type: str
    created_at: datetime
    status: str
    days_remaining: int

    model_config = {"from_attributes": True}


class RetentionPreviewRead(BaseModel):
    cutoff_at: datetime
    horizon_at: datetime
    will_delete_messages: int
    will_delete_files: int
    items: list[PreviewItemRead]

    model_config = {"from_attributes": True}
