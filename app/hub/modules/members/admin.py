from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.hub.db import db_session
from app.hub.models import Profile
from app.hub.modules.members.service import list_members, update_member_profile, update_own_profile
from app.hub.rbac import is_superadmin, require_auth, require_permission
from app.hub.utils import json_body, to_int

bp = Blueprint("members", __name__)


@bp.patch("/api/profile")
@require_auth
def profile_update_self():
    s = db_session()
    profile = s.merge(g.current_profile)
    update_own_profile(s, profile, json_body(request), g.current_user)
    s.commit()
    return jsonify({"success": True, "profile": profile.to_dict()})


@bp.put("/api/profile")
@require_permission("members.edit")
def profile_update_member():
    s = db_session()
    editor: Profile = g.current_profile

    data = json_body(request)
    target_id = to_int(data.get("targetUserId"))
    if target_id is None:
        return jsonify({"error": "targetUserId is required"}), 400
    target = s.get(Profile, target_id)
    if not target:
        return jsonify({"error": "Profile not found"}), 404

    fields = {k: v for k, v in data.items() if k != "targetUserId"}
    update_member_profile(s, editor, target, fields, g.current_user)
    s.commit()
    return jsonify({"success": True, "profile": target.to_dict()})


@bp.get("/api/alliance/members")
@require_permission("members.view")
def alliance_members():
    s = db_session()
    profile: Profile = g.current_profile
    alliance_id = profile.alliance_id
    if is_superadmin(profile):
        alliance_id = to_int(request.args.get("alliance_id")) or alliance_id
    if alliance_id is None:
        return jsonify({"error": "You are not assigned to an alliance"}), 400

    members = list_members(s, alliance_id)
    return jsonify(
        {
            "alliance_id": alliance_id,
            "members": [
                {**m.to_dict(), "email": m.user.email if m.user else None} for m in members
            ],
        }
    )
