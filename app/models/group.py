from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.common import TimestampMixin, UUIDPrimaryKeyMixin


class ClassGroup(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "class_groups"
    __table_args__ = (UniqueConstraint("year", "section", "subject", name="uq_class_groups_year_section_subject"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    max_members: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    member_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    creator = relationship("User")
    members = relationship("GroupMember", back_populates="group", passive_deletes=True)
    messages = relationship("GroupMessage", back_populates="group", passive_deletes=True)

    @property
    def is_password_protected(self) -> bool:
        return self.password_hash is not None
