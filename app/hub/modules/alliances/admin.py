from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.hub.db import db_session
from app.hub.models import Profile, User
from app.hub.modules.alliances.models import Alliance
from app.hub.modules.alliances.service import (
    SETTINGS_FIELDS,
    alliance_dashboard,
    create_alliance,
    delete_alliance,
    list_alliances,
    update_alliance,
)
from app.hub.rbac import is_superadmin, require_permission
from app.hub.utils import json_body, to_int

bp = Blueprint("alliances", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _caller_alliance(s) -> Alliance | None:
    profile: Profile = g.current_profile
    alliance_id = profile.alliance_id
    if is_superadmin(profile):
        alliance_id = to_int(request.args.get("alliance_id")) or alliance_id
    if alliance_id is None:
        return None
    return s.get(Alliance, alliance_id)


# ---------- Public ----------
@bp.get("/api/alliances")
def alliances_list():
    s = db_session()
    return jsonify({"alliances": [a.to_dict() for a in list_alliances(s)]})


@bp.get("/api/alliances/top")
def alliances_top():
    s = db_session()
    return jsonify({"alliances": [a.to_dict() for a in list_alliances(s, limit=3)]})


@bp.get("/api/alliances/<int:alliance_id>")
def alliance_detail(alliance_id: int):
    s = db_session()
    alliance = s.get(Alliance, alliance_id)
    if not alliance:
        return jsonify({"error": "Alliance not found"}), 404
    return jsonify({"alliance": alliance.to_dict()})


# ---------- Superadmin CRUD ----------
@bp.post("/api/admin/alliances")
@require_permission("admin.superadmin", "Superadmin access required")
def admin_alliance_create():
    s = db_session()
    alliance = create_alliance(s, json_body(request), _current_user())
    s.commit()
    return jsonify({"success": True, "alliance": alliance.to_dict()}), 201


@bp.patch("/api/admin/alliances/<int:alliance_id>")
@require_permission("admin.superadmin", "Superadmin access required")
def admin_alliance_update(alliance_id: int):
    s = db_session()
    alliance = s.get(Alliance, alliance_id)
    if not alliance:
        return jsonify({"error": "Alliance not found"}), 404
    update_alliance(s, alliance, json_body(request), _current_user())
    s.commit()
    return jsonify({"success": True, "alliance": alliance.to_dict()})


@bp.delete("/api/admin/alliances/<int:alliance_id>")
@require_permission("admin.superadmin", "Superadmin access required")
def admin_alliance_delete(alliance_id: int):
    s = db_session()
    alliance = s.get(Alliance, alliance_id)
    if not alliance:
        return jsonify({"error": "Alliance not found"}), 404
    delete_alliance(s, alliance, _current_user())
    s.commit()
    return jsonify({"success": True})


# ---------- Own alliance ----------
@bp.get("/api/alliance")
@require_permission("alliance.view")
def own_alliance():
    s = db_session()
    alliance = _caller_alliance(s)
    if not alliance:
        return jsonify({"error": "You are not assigned to an alliance"}), 400
    return jsonify(alliance_dashboard(s, alliance))


@bp.patch("/api/alliance/settings")
@require_permission("alliance.edit", "You do not have permission to edit alliance settings")
def own_alliance_settings():
    s = db_session()
    alliance = _caller_alliance(s)
    if not alliance:
        return jsonify({"error": "You are not assigned to an alliance"}), 400
    update_alliance(
        s,
        alliance,
        json_body(request),
        _current_user(),
        fields=SETTINGS_FIELDS,
        action="alliance.settings_update",
    )
    s.commit()
    return jsonify({"success": True, "alliance": alliance.to_dict()})
