from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.hub.models import Base


class Alliance(Base):
    __tablename__ = "alliances"
    __table_args__ = (Index("idx_alliances_rank", "rank"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..n, top 3 shown publicly
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    recruitment_status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")  # open, closed, invite_only
    contact_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rank": self.rank,
            "description": self.description,
            "recruitment_status": self.recruitment_status,
            "recruitment_status_text": recruitment_status_text(self.recruitment_status),
            "contact_info": self.contact_info,
            "logo_url": self.logo_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def recruitment_status_text(status: str | None) -> str:
    from app.hub.constants import RECRUITMENT_STATUS_TEXT

    return RECRUITMENT_STATUS_TEXT.get(status or "", "Unknown")
