from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from app.hub.modules.alliances.models import Alliance


class Base(DeclarativeBase):
    pass


class User(Base):
    """Login identity. Everything community-facing lives on Profile."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    profile: Mapped["Profile | None"] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        Index("idx_profiles_alliance", "alliance_id"),
        Index("idx_profiles_role", "role"),
    )

    # Same id as the owning user row
    id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    hq_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    power: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="member")  # superadmin, r5, r4, member
    alliance_id: Mapped[int | None] = mapped_column(ForeignKey("alliances.id", ondelete="SET NULL"), nullable=True)
    can_edit_alliance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_president: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped[User] = relationship(back_populates="profile", lazy="selectin")
    alliance: Mapped["Alliance | None"] = relationship(lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "hq_level": self.hq_level,
            "power": self.power,
            "notes": self.notes,
            "role": self.role,
            "alliance_id": self.alliance_id,
            "can_edit_alliance": self.can_edit_alliance,
            "is_president": self.is_president,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AuthToken(Base):
    """
    Bearer token issued at sign-in. Only the sha256 of the token is stored.
    """

    __tablename__ = "auth_tokens"
    __table_args__ = (Index("idx_auth_tokens_user", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped[User] = relationship(lazy="selectin")


class RateLimit(Base):
    """
    Fixed-window request counter, keyed by user or by client IP.
    """

    __tablename__ = "rate_limits"
    __table_args__ = (
        Index("idx_rate_limits_user", "user_id", "resource_type", "window_start"),
        Index("idx_rate_limits_ip", "ip_address", "resource_type", "window_start"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)  # application_submit, ai_image_generate
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table intentionally generic; module-specific tables can refer to it by id if needed.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "application.review"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "MigrationApplication"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(100), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.hub.modules.alliances.models import Alliance  # noqa: E402,F401
from app.hub.modules.applications.models import MigrationApplication  # noqa: E402,F401
from app.hub.modules.contact.models import ContactMessage  # noqa: E402,F401
from app.hub.modules.state_info.models import StateInfo, StateInfoProposal, StateInfoVote  # noqa: E402,F401
from app.hub.modules.war_plan.models import WarPlan, WarPlanAssignment, WarRosterPlayer  # noqa: E402,F401
from app.hub.modules.ai_studio.models import AIGeneratedImage, AlliancePresentation  # noqa: E402,F401
from app.hub.modules.chat.models import ChatMessage  # noqa: E402,F401
