from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin


class Attachment(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "attachments"

    message_id: Mapped[str] = mapped_column(
        ForeignKey("group_messages.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)

    message = relationship("GroupMessage", back_populates="attachment")
