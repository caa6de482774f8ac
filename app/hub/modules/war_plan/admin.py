from __future__ import annotations

import io
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import Blueprint, g, jsonify, request, send_file

from app.hub.db import db_session
from app.hub.models import Profile
from app.hub.modules.war_plan.models import WarRosterPlayer
from app.hub.modules.war_plan.service import (
    NO_ALLIANCE_MESSAGE,
    active_roster,
    add_roster_player,
    delete_roster_player,
    get_plan,
    glory_war_export_sheets,
    plan_assignments,
    save_glory_war_plan,
    update_roster_player,
)
from app.hub.rbac import require_permission
from app.hub.spreadsheet import XLSX_MIMETYPE, build_workbook, timestamped_filename
from app.hub.utils import json_body

bp = Blueprint("war_plan", __name__)


def require_war_plan_editor(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Officer with an alliance; the alliance scopes every query below."""

    @require_permission("war_plan.edit")
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        profile: Profile = g.current_profile
        if profile.alliance_id is None:
            return jsonify({"error": NO_ALLIANCE_MESSAGE}), 400
        return fn(*args, **kwargs)

    return wrapped


def _own_roster_player(s, player_id: int) -> WarRosterPlayer | None:
    player = s.get(WarRosterPlayer, player_id)
    if not player or player.alliance_id != g.current_profile.alliance_id:
        return None
    return player


# ---------- Roster ----------
@bp.get("/api/war-plan/roster")
@require_war_plan_editor
def roster_list():
    s = db_session()
    return jsonify({"roster": [p.to_dict() for p in active_roster(s, g.current_profile.alliance_id)]})


@bp.post("/api/war-plan/roster")
@require_war_plan_editor
def roster_create():
    s = db_session()
    player = add_roster_player(s, g.current_profile, json_body(request), g.current_user)
    s.commit()
    return jsonify({"player": player.to_dict()}), 201


@bp.patch("/api/war-plan/roster/<int:player_id>")
@require_war_plan_editor
def roster_update(player_id: int):
    s = db_session()
    player = _own_roster_player(s, player_id)
    if not player:
        return jsonify({"error": "Roster player not found"}), 404
    update_roster_player(s, player, g.current_profile, json_body(request), g.current_user)
    s.commit()
    return jsonify({"player": player.to_dict()})


@bp.delete("/api/war-plan/roster/<int:player_id>")
@require_war_plan_editor
def roster_delete(player_id: int):
    s = db_session()
    player = _own_roster_player(s, player_id)
    if not player:
        return jsonify({"error": "Roster player not found"}), 404
    delete_roster_player(s, player, g.current_user)
    s.commit()
    return jsonify({"success": True})


# ---------- Glory war ----------
@bp.get("/api/war-plan/glory-war")
@require_war_plan_editor
def glory_war_get():
    s = db_session()
    alliance_id = g.current_profile.alliance_id
    plan = get_plan(s, alliance_id)
    return jsonify(
        {
            "roster": [p.to_dict() for p in active_roster(s, alliance_id)],
            "plan": plan.to_dict() if plan else None,
            "assignments": [a.to_dict() for a in plan_assignments(s, plan)],
        }
    )


@bp.put("/api/war-plan/glory-war")
@require_war_plan_editor
def glory_war_save():
    s = db_session()
    plan = save_glory_war_plan(s, g.current_profile, json_body(request), g.current_user)
    s.commit()
    return jsonify(
        {
            "success": True,
            "plan": plan.to_dict(),
            "assignments": [a.to_dict() for a in plan_assignments(s, plan)],
        }
    )


@bp.get("/api/war-plan/glory-war/export")
@require_war_plan_editor
def glory_war_export():
    s = db_session()
    content = build_workbook(glory_war_export_sheets(s, g.current_profile.alliance_id))
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=timestamped_filename("glory-war-plan"),
    )
