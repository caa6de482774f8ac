from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.hub.models import Base


class AIGeneratedImage(Base):
    __tablename__ = "ai_generated_images"
    __table_args__ = (Index("idx_ai_images_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    alliance_id: Mapped[int | None] = mapped_column(ForeignKey("alliances.id", ondelete="SET NULL"), nullable=True)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    revised_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_type: Mapped[str] = mapped_column(String(32), nullable=False)  # banner, emblem, logo_draft
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "alliance_id": self.alliance_id,
            "storage_key": self.storage_key,
            "prompt": self.prompt,
            "revised_prompt": self.revised_prompt,
            "image_type": self.image_type,
            "file_url": f"/api/ai/images/{self.id}/file",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AlliancePresentation(Base):
    __tablename__ = "alliance_presentations"
    __table_args__ = (Index("idx_presentations_alliance", "alliance_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    alliance_id: Mapped[int] = mapped_column(ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False)
    generated_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    bullet_points: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tone: Mapped[str] = mapped_column(String(32), nullable=False)  # formal, casual, enthusiastic, professional
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "alliance_id": self.alliance_id,
            "generated_by": self.generated_by,
            "bullet_points": list(self.bullet_points or []),
            "tone": self.tone,
            "content": self.content,
            "is_published": self.is_published,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
        }
