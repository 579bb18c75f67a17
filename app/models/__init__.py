from app.models.attachment import Attachment
from app.models.cleanup_run import CleanupRun
from app.models.group import ClassGroup
from app.models.group_member import GroupMember
from app.models.message import GroupMessage
from app.models.message_read import GroupMessageRead
from app.models.user import User

__all__ = ["User", "ClassGroup", "GroupMember", "GroupMessage", "GroupMessageRead", "Attachment", "CleanupRun"]
