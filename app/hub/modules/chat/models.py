from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.hub.models import Base

if TYPE_CHECKING:
    from app.hub.models import Profile


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (Index("idx_chat_messages_room_created", "room_name", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_name: Mapped[str] = mapped_column(String(64), nullable=False, default="state-244-diplomacy")
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    sender: Mapped["Profile | None"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_name": self.room_name,
            "sender_id": self.sender_id,
            "sender_name": self.sender.display_name if self.sender else None,
            "content": self.content,
            "image_key": self.image_key,
            "image_url": f"/api/chat/images/{self.image_key}" if self.image_key else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
