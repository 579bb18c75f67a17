from datetime import datetime

from pydantic import BaseModel


class AttachmentRead(BaseModel):
    id: str
    file_name: str
    file_size: int
    mime_type: str

    model_config = {"from_attributes": True}


class MessageRead(BaseModel):
    id: str
    group_id: str
    user_id: str
    body: str | None
    message_type: str
    reply_to_id: str | None
    created_at: datetime
    attachment: AttachmentRead | None = None

    model_config = {"from_attributes": True}


class MessageReadReceipt(BaseModel):
    message_id: str
    user_id: str
    read_at: datetime

    model_config = {"from_attributes": True}
