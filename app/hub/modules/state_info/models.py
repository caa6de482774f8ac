from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.hub.models import Base

if TYPE_CHECKING:
    from app.hub.models import Profile


class StateInfo(Base):
    """A titled section of public state information (rules, schedule, ...)."""

    __tablename__ = "state_info"
    __table_args__ = (Index("idx_state_info_order", "display_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    section_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "section_key": self.section_key,
            "title": self.title,
            "content": self.content,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class StateInfoProposal(Base):
    __tablename__ = "state_info_proposals"
    __table_args__ = (
        Index("idx_state_info_proposals_status", "status"),
        Index("idx_state_info_proposals_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    section_key: Mapped[str] = mapped_column(String(64), nullable=False)
    proposed_title: Mapped[str] = mapped_column(String(200), nullable=False)
    proposed_content: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")  # pending, approved, rejected
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    proposer: Mapped["Profile | None"] = relationship(lazy="selectin")
    votes: Mapped[list["StateInfoVote"]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="StateInfoVote.voted_at",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "section_key": self.section_key,
            "proposed_title": self.proposed_title,
            "proposed_content": self.proposed_content,
            "proposed_by": self.proposed_by,
            "proposer_name": self.proposer.display_name if self.proposer else None,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "votes": [v.to_dict() for v in self.votes],
        }


class StateInfoVote(Base):
    __tablename__ = "state_info_votes"
    __table_args__ = (UniqueConstraint("proposal_id", "voter_id", name="uq_state_info_votes_proposal_voter"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    proposal_id: Mapped[int] = mapped_column(ForeignKey("state_info_proposals.id", ondelete="CASCADE"), nullable=False)
    voter_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    vote: Mapped[str] = mapped_column(String(16), nullable=False)  # approve, reject
    voted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    proposal: Mapped[StateInfoProposal] = relationship(back_populates="votes")
    voter: Mapped["Profile"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "voter_id": self.voter_id,
            "voter_name": self.voter.display_name if self.voter else None,
            "vote": self.vote,
            "voted_at": self.voted_at.isoformat() if self.voted_at else None,
        }
