from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.hub.audit import apply_changes, record_event
from app.hub.constants import RECRUITMENT_STATUSES
from app.hub.utils import ServiceError, clean_str, optional_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import User
    from app.hub.modules.alliances.models import Alliance


ADMIN_FIELDS = ("name", "description", "recruitment_status", "contact_info", "rank", "logo_url")
SETTINGS_FIELDS = ("name", "description", "recruitment_status", "contact_info")


def list_alliances(s: "Session", limit: int | None = None) -> list["Alliance"]:
    from app.hub.modules.alliances.models import Alliance

    q = s.query(Alliance).order_by(Alliance.rank.is_(None), Alliance.rank.asc(), Alliance.name.asc())
    if limit:
        q = q.limit(limit)
    return q.all()


def clean_alliance_payload(payload: dict, fields: tuple[str, ...], *, require_name: bool) -> dict:
    """Validate and normalize the subset of alliance fields present in payload."""
    out: dict = {}
    if "name" in payload or require_name:
        name = clean_str(payload.get("name"), 100)
        if not name:
            raise ServiceError("Alliance name is required")
        out["name"] = name
    if "recruitment_status" in payload and "recruitment_status" in fields:
        status = clean_str(payload.get("recruitment_status"))
        if status not in RECRUITMENT_STATUSES:
            raise ServiceError(f"Invalid recruitment status. Must be one of: {', '.join(RECRUITMENT_STATUSES)}")
        out["recruitment_status"] = status
    for key in ("description", "contact_info"):
        if key in payload and key in fields:
            out[key] = optional_str(payload.get(key))
    if "logo_url" in payload and "logo_url" in fields:
        out["logo_url"] = optional_str(payload.get("logo_url"), 500)
    if "rank" in payload and "rank" in fields:
        raw = payload.get("rank")
        if raw in (None, ""):
            out["rank"] = None
        else:
            rank = to_int(raw)
            if rank is None or rank < 1:
                raise ServiceError("Rank must be a positive integer")
            out["rank"] = rank
    return out


def _ensure_unique_name(s: "Session", name: str, exclude_id: int | None = None) -> None:
    from app.hub.modules.alliances.models import Alliance

    q = s.query(Alliance).filter(func.lower(Alliance.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Alliance.id != exclude_id)
    if q.first():
        raise ServiceError("An alliance with this name already exists", 409)


def create_alliance(s: "Session", payload: dict, user: "User") -> "Alliance":
    from app.hub.modules.alliances.models import Alliance

    data = clean_alliance_payload(payload, ADMIN_FIELDS, require_name=True)
    _ensure_unique_name(s, data["name"])
    now = datetime.utcnow()
    alliance = Alliance(
        name=data["name"],
        rank=data.get("rank"),
        description=data.get("description"),
        recruitment_status=data.get("recruitment_status") or "open",
        contact_info=data.get("contact_info"),
        logo_url=data.get("logo_url"),
        created_at=now,
        updated_at=now,
    )
    s.add(alliance)
    s.flush()
    record_event(
        s,
        actor=user,
        action="alliance.create",
        entity_type="Alliance",
        entity_id=str(alliance.id),
        metadata={"name": alliance.name},
    )
    return alliance


def update_alliance(
    s: "Session",
    alliance: "Alliance",
    payload: dict,
    user: "User",
    *,
    fields: tuple[str, ...] = ADMIN_FIELDS,
    action: str = "alliance.update",
) -> "Alliance":
    data = clean_alliance_payload({k: v for k, v in payload.items() if k in fields}, fields, require_name=False)
    if not data:
        raise ServiceError("No updates provided")
    if "name" in data:
        _ensure_unique_name(s, data["name"], exclude_id=alliance.id)

    changes = apply_changes(alliance, data)
    alliance.updated_at = datetime.utcnow()

    if changes:
        record_event(
            s,
            actor=user,
            action=action,
            entity_type="Alliance",
            entity_id=str(alliance.id),
            metadata={"changes": changes},
        )
    return alliance


def delete_alliance(s: "Session", alliance: "Alliance", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="alliance.delete",
        entity_type="Alliance",
        entity_id=str(alliance.id),
        metadata={"name": alliance.name},
    )
    s.delete(alliance)


def alliance_dashboard(s: "Session", alliance: "Alliance") -> dict:
    from app.hub.models import Profile
    from app.hub.modules.applications.models import MigrationApplication

    member_count = s.query(func.count(Profile.id)).filter(Profile.alliance_id == alliance.id).scalar() or 0
    pending = (
        s.query(func.count(MigrationApplication.id))
        .filter(MigrationApplication.target_alliance_id == alliance.id)
        .filter(MigrationApplication.alliance_status == "pending")
        .scalar()
        or 0
    )
    return {
        "alliance": alliance.to_dict(),
        "member_count": int(member_count),
        "pending_applications": int(pending),
    }
