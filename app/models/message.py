from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin


class GroupMessage(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "group_messages"

    group_id: Mapped[str] = mapped_column(ForeignKey("class_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_type: Mapped[str] = mapped_column(String(16), default="text", nullable=False)
    reply_to_id: Mapped[str | None] = mapped_column(ForeignKey("group_messages.id", ondelete="SET NULL"), nullable=True)

    group = relationship("ClassGroup", back_populates="messages")
    author = relationship("User")
    attachment = relationship("Attachment", back_populates="message", uselist=False, passive_deletes=True)
    reads = relationship("GroupMessageRead", back_populates="message", passive_deletes=True)
