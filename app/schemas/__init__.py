from app.schemas.auth import LoginRequest, TokenResponse, UserCreate, UserRead
from app.schemas.cleanup import CleanupResultRead, CleanupRunRead, PreviewItemRead, RetentionPreviewRead
from app.schemas.group import GroupCreate, GroupJoin, GroupPasswordUpdate, GroupRead, GroupUpdate, MemberRead
from app.schemas.message import AttachmentRead, MessageRead, MessageReadReceipt

__all__ = [
    "UserCreate",
    "UserRead",
    "LoginRequest",
    "TokenResponse",
    "GroupCreate",
    "GroupUpdate",
    "GroupJoin",
    "GroupPasswordUpdate",
    "GroupRead",
    "MemberRead",
    "AttachmentRead",
    "MessageRead",
    "MessageReadReceipt",
    "CleanupResultRead",
    "CleanupRunRead",
    "PreviewItemRead",
    "RetentionPreviewRead",
]
