from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.hub.audit import apply_changes, record_event
from app.hub.constants import DISPLAY_NAME_MAX, HQ_LEVEL_MAX, HQ_LEVEL_MIN, NOTES_MAX, ROLE_R4, ROLE_R5
from app.hub.rbac import is_superadmin
from app.hub.utils import ServiceError, clamp, clean_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import Profile, User


def clean_profile_fields(payload: dict) -> dict:
    """
    Normalize the self-editable profile fields present in payload.
    Numbers are clamped rather than rejected; empty notes clear the field.
    """
    out: dict = {}
    if "display_name" in payload:
        name = clean_str(payload.get("display_name"), DISPLAY_NAME_MAX)
        if not name:
            raise ServiceError("Display name cannot be empty")
        out["display_name"] = name
    if "hq_level" in payload:
        hq = to_int(payload.get("hq_level"))
        if hq is None:
            raise ServiceError("HQ level must be a number")
        out["hq_level"] = clamp(hq, HQ_LEVEL_MIN, HQ_LEVEL_MAX)
    if "power" in payload:
        power = to_int(payload.get("power"))
        if power is None:
            raise ServiceError("Power must be a number")
        out["power"] = clamp(power, 0)
    if "notes" in payload:
        out["notes"] = clean_str(payload.get("notes"), NOTES_MAX) or None
    return out


def _apply(s: "Session", profile: "Profile", data: dict, actor: "User", action: str) -> "Profile":
    if not data:
        raise ServiceError("No updates provided")
    changes = apply_changes(profile, data)
    profile.updated_at = datetime.utcnow()
    if changes:
        record_event(
            s,
            actor=actor,
            action=action,
            entity_type="Profile",
            entity_id=str(profile.id),
            metadata={"changes": changes},
        )
    return profile


def update_own_profile(s: "Session", profile: "Profile", payload: dict, actor: "User") -> "Profile":
    return _apply(s, profile, clean_profile_fields(payload), actor, "profile.update")


def can_manage_member(editor: "Profile", target: "Profile") -> bool:
    if is_superadmin(editor):
        return True
    return editor.role == ROLE_R5 and editor.alliance_id is not None and editor.alliance_id == target.alliance_id


def update_member_profile(
    s: "Session", editor: "Profile", target: "Profile", payload: dict, actor: "User"
) -> "Profile":
    if not can_manage_member(editor, target):
        raise ServiceError("You can only edit members of your own alliance", 403)
    data = clean_profile_fields(payload)
    if "can_edit_alliance" in payload:
        data["can_edit_alliance"] = bool(payload.get("can_edit_alliance")) and target.role == ROLE_R4
    return _apply(s, target, data, actor, "member.update")


def list_members(s: "Session", alliance_id: int) -> list["Profile"]:
    from app.hub.models import Profile

    return (
        s.query(Profile)
        .filter(Profile.alliance_id == alliance_id)
        .order_by(Profile.power.desc(), Profile.display_name.asc())
        .all()
    )
