from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.hub.models import Base

if TYPE_CHECKING:
    from app.hub.models import Profile
    from app.hub.modules.alliances.models import Alliance


class MigrationApplication(Base):
    """
    A player's request to migrate into State 244.

    Two review stages run in order: the target alliance decides first, then the
    state president. `status` is derived from the two stage outcomes.
    """

    __tablename__ = "migration_applications"
    __table_args__ = (
        Index("idx_applications_target", "target_alliance_id"),
        Index("idx_applications_status", "status"),
        Index("idx_applications_submitted", "submitted_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Player details
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    topic: Mapped[str] = mapped_column(String(120), nullable=False)
    current_server: Mapped[str] = mapped_column(String(50), nullable=False)
    current_alliance: Mapped[str | None] = mapped_column(String(100), nullable=True)
    power_level: Mapped[int] = mapped_column(BigInteger, nullable=False)
    hq_level: Mapped[int] = mapped_column(Integer, nullable=False)
    troop_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    arena_power: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    duel_points: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    svs_participation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    motivation: Mapped[str] = mapped_column(Text, nullable=False)
    screenshots: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)

    target_alliance_id: Mapped[int | None] = mapped_column(ForeignKey("alliances.id", ondelete="SET NULL"), nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="submitted")  # submitted, reviewing, approved, rejected
    alliance_status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    alliance_reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    alliance_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    alliance_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    president_status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    president_reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    president_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    president_note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    submitter_ip: Mapped[str | None] = mapped_column(String(100), nullable=True)

    target_alliance: Mapped["Alliance | None"] = relationship(lazy="selectin")
    alliance_reviewer: Mapped["Profile | None"] = relationship(foreign_keys=[alliance_reviewed_by], lazy="selectin")
    president_reviewer: Mapped["Profile | None"] = relationship(foreign_keys=[president_reviewed_by], lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "player_name": self.player_name,
            "topic": self.topic,
            "current_server": self.current_server,
            "current_alliance": self.current_alliance,
            "power_level": self.power_level,
            "hq_level": self.hq_level,
            "troop_level": self.troop_level,
            "arena_power": self.arena_power,
            "duel_points": self.duel_points,
            "svs_participation": self.svs_participation,
            "motivation": self.motivation,
            "screenshots": list(self.screenshots or []),
            "target_alliance_id": self.target_alliance_id,
            "target_alliance": (
                {"id": self.target_alliance.id, "name": self.target_alliance.name} if self.target_alliance else None
            ),
            "status": self.status,
            "alliance_status": self.alliance_status,
            "alliance_reviewed_by": self.alliance_reviewed_by,
            "alliance_reviewer_name": self.alliance_reviewer.display_name if self.alliance_reviewer else None,
            "alliance_reviewed_at": self.alliance_reviewed_at.isoformat() if self.alliance_reviewed_at else None,
            "alliance_note": self.alliance_note,
            "president_status": self.president_status,
            "president_reviewed_by": self.president_reviewed_by,
            "president_reviewer_name": self.president_reviewer.display_name if self.president_reviewer else None,
            "president_reviewed_at": self.president_reviewed_at.isoformat() if self.president_reviewed_at else None,
            "president_note": self.president_note,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
