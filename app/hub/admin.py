from __future__ import annotations

from datetime import datetime

from flask import Blueprint, g, jsonify, request

from app.hub.audit import apply_changes, record_event
from app.hub.constants import ROLE_R4, ROLE_R5, VALID_ROLES
from app.hub.db import db_session
from app.hub.models import AuditEvent, Profile, User
from app.hub.modules.alliances.models import Alliance
from app.hub.rbac import require_permission
from app.hub.utils import clamp, clean_str, json_body, to_int

bp = Blueprint("admin", __name__)

_SUPERADMIN_ONLY = "Superadmin access required"


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _user_row(p: Profile) -> dict:
    return {
        **p.to_dict(),
        "email": p.user.email if p.user else None,
        "is_active": p.user.is_active if p.user else False,
        "alliance_name": p.alliance.name if p.alliance else None,
    }


# ---------- Users ----------
@bp.get("/api/admin/users")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def users_list():
    s = db_session()
    profiles = s.query(Profile).order_by(Profile.created_at.desc(), Profile.id.desc()).all()
    return jsonify({"users": [_user_row(p) for p in profiles]})


@bp.patch("/api/admin/users/<int:user_id>")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def users_update(user_id: int):
    s = db_session()
    data = json_body(request)
    profile = s.get(Profile, user_id)
    if not profile:
        return jsonify({"error": "User not found"}), 404

    updates: dict = {}
    if "role" in data:
        role = clean_str(data.get("role"))
        if role not in VALID_ROLES:
            return jsonify({"error": "Invalid role"}), 400
        updates["role"] = role
    if "alliance_id" in data:
        alliance_id = to_int(data.get("alliance_id")) if data.get("alliance_id") else None
        if alliance_id is not None and not s.get(Alliance, alliance_id):
            return jsonify({"error": "Alliance not found"}), 400
        updates["alliance_id"] = alliance_id
    if "can_edit_alliance" in data:
        updates["can_edit_alliance"] = bool(data.get("can_edit_alliance"))
    if not updates:
        return jsonify({"error": "No updates provided"}), 400

    # Only R4 carries the alliance edit flag; R5 and above edit implicitly.
    resulting_role = updates.get("role", profile.role)
    if resulting_role != ROLE_R4:
        updates["can_edit_alliance"] = False

    changes = apply_changes(profile, updates)
    profile.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=_current_user(),
        action="user.update",
        entity_type="Profile",
        entity_id=str(profile.id),
        metadata={"changes": changes},
    )
    s.commit()
    return jsonify({"success": True, "user": _user_row(profile)})


@bp.delete("/api/admin/users/<int:user_id>")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def users_delete(user_id: int):
    s = db_session()
    actor = _current_user()
    if user_id == actor.id:
        return jsonify({"error": "You cannot delete your own account"}), 400
    user = s.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    if user.profile is not None:
        user.profile.is_president = False
    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.delete(user)
    s.commit()
    return jsonify({"success": True})


# ---------- President ----------
def _current_president(s) -> Profile | None:
    return s.query(Profile).filter(Profile.is_president.is_(True)).first()


@bp.get("/api/admin/president")
def president_get():
    s = db_session()
    president = _current_president(s)
    if not president:
        return jsonify({"president": None})
    return jsonify(
        {
            "president": {
                "id": president.id,
                "display_name": president.display_name,
                "role": president.role,
                "alliance_id": president.alliance_id,
                "alliance_name": president.alliance.name if president.alliance else None,
            }
        }
    )


@bp.post("/api/admin/president")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def president_assign():
    s = db_session()
    target_id = to_int(json_body(request).get("userId"))
    if target_id is None:
        return jsonify({"error": "userId is required"}), 400
    target = s.get(Profile, target_id)
    if not target:
        return jsonify({"error": "User not found"}), 404
    if target.role not in (ROLE_R4, ROLE_R5):
        return jsonify({"error": "President must be an R4 or R5"}), 400

    previous = [p.id for p in s.query(Profile).filter(Profile.is_president.is_(True)).all()]
    s.query(Profile).filter(Profile.is_president.is_(True)).update(
        {Profile.is_president: False}, synchronize_session="fetch"
    )
    target.is_president = True
    target.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=_current_user(),
        action="president.assign",
        entity_type="Profile",
        entity_id=str(target.id),
        metadata={"previous": previous},
    )
    s.commit()
    return jsonify({"success": True, "president": {"id": target.id, "display_name": target.display_name}})


@bp.delete("/api/admin/president")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def president_clear():
    s = db_session()
    previous = [p.id for p in s.query(Profile).filter(Profile.is_president.is_(True)).all()]
    s.query(Profile).filter(Profile.is_president.is_(True)).update(
        {Profile.is_president: False}, synchronize_session="fetch"
    )
    record_event(
        s,
        actor=_current_user(),
        action="president.clear",
        entity_type="Profile",
        entity_id=None,
        metadata={"previous": previous},
    )
    s.commit()
    return jsonify({"success": True})


# ---------- Audit ----------
@bp.get("/api/admin/audit")
@require_permission("admin.superadmin", _SUPERADMIN_ONLY)
def audit_list():
    s = db_session()
    q = s.query(AuditEvent)
    action = (request.args.get("action") or "").strip()
    if action:
        q = q.filter(AuditEvent.action.like(f"{action}%"))
    n = to_int(request.args.get("limit"))
    n = clamp(n if n is not None else 200, 1, 1000)
    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(n).all()
    return jsonify(
        {
            "events": [
                {
                    "id": e.id,
                    "created_at": e.created_at.isoformat() if e.created_at else None,
                    "request_id": e.request_id,
                    "actor_user_id": e.actor_user_id,
                    "actor_user_email": e.actor_user_email,
                    "action": e.action,
                    "entity_type": e.entity_type,
                    "entity_id": e.entity_id,
                    "reason": e.reason,
                    "metadata_json": e.metadata_json,
                    "client_ip": e.client_ip,
                }
                for e in events
            ]
        }
    )
