from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.hub.models import Base

if TYPE_CHECKING:
    from app.hub.models import Profile


class WarRosterPlayer(Base):
    """A player an alliance can slot into war plans (may or may not have an account)."""

    __tablename__ = "war_roster_players"
    __table_args__ = (
        UniqueConstraint("alliance_id", "player_name", name="uq_war_roster_alliance_name"),
        Index("idx_war_roster_alliance", "alliance_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    alliance_id: Mapped[int] = mapped_column(ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False)
    player_name: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(250), nullable=True)
    linked_profile_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    linked_profile: Mapped["Profile | None"] = relationship(foreign_keys=[linked_profile_id], lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "alliance_id": self.alliance_id,
            "player_name": self.player_name,
            "notes": self.notes,
            "linked_profile_id": self.linked_profile_id,
            "linked_profile_name": self.linked_profile.display_name if self.linked_profile else None,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class WarPlan(Base):
    __tablename__ = "war_plans"
    __table_args__ = (UniqueConstraint("alliance_id", "mode", name="uq_war_plans_alliance_mode"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    alliance_id: Mapped[int] = mapped_column(ForeignKey("alliances.id", ondelete="CASCADE"), nullable=False)
    mode: Mapped[str] = mapped_column(String(32), nullable=False, default="glory_war")
    title: Mapped[str] = mapped_column(String(100), nullable=False, default="Glory War Plan")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    assignments: Mapped[list["WarPlanAssignment"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="WarPlanAssignment.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "alliance_id": self.alliance_id,
            "mode": self.mode,
            "title": self.title,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class WarPlanAssignment(Base):
    __tablename__ = "war_plan_assignments"
    __table_args__ = (
        UniqueConstraint("plan_id", "roster_player_id", name="uq_war_plan_assignment_player"),
        Index("idx_war_plan_assignments_plan", "plan_id", "team", "position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("war_plans.id", ondelete="CASCADE"), nullable=False)
    roster_player_id: Mapped[int] = mapped_column(ForeignKey("war_roster_players.id", ondelete="CASCADE"), nullable=False)
    team: Mapped[str] = mapped_column(String(16), nullable=False)  # attacker, defender
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    plan: Mapped[WarPlan] = relationship(back_populates="assignments")
    roster_player: Mapped[WarRosterPlayer] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "roster_player_id": self.roster_player_id,
            "team": self.team,
            "position": self.position,
        }
