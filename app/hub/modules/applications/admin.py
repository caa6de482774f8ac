from __future__ import annotations

import io

from flask import Blueprint, current_app, g, jsonify, request, send_file

from app.hub.db import db_session
from app.hub.models import Profile
from app.hub.modules.applications.models import MigrationApplication
from app.hub.modules.applications.service import (
    approved_players,
    export_rows,
    filtered_query,
    review_application,
    submit_application,
)
from app.hub.notifications import notify_new_application
from app.hub.rbac import require_auth, require_permission
from app.hub.spreadsheet import XLSX_MIMETYPE, build_workbook, timestamped_filename
from app.hub.utils import get_client_ip, json_body, to_int

bp = Blueprint("applications", __name__)


@bp.post("/api/applications")
def application_submit():
    data = json_body(request)
    if data.get("website"):
        # Honeypot filled: pretend success.
        return jsonify({"success": True}), 200

    s = db_session()
    application = submit_application(s, data, ip_address=get_client_ip(request))
    s.commit()

    notify_new_application(
        current_app.config,
        player_name=application.player_name,
        topic=application.topic,
        current_server=application.current_server,
        current_alliance=application.current_alliance,
        power_level=application.power_level,
        hq_level=application.hq_level,
        troop_level=application.troop_level,
        target_alliance_name=application.target_alliance.name if application.target_alliance else "Unknown",
        motivation=application.motivation,
    )
    return jsonify({"success": True, "application": application.to_dict()}), 201


@bp.get("/api/applications")
@require_permission("applications.view")
def applications_list():
    s = db_session()
    q = filtered_query(s, request.args.get("filter"), to_int(request.args.get("alliance_id")))
    return jsonify({"applications": [a.to_dict() for a in q.all()]})


@bp.get("/api/applications/export")
@require_permission("applications.view")
def applications_export():
    s = db_session()
    q = filtered_query(s, request.args.get("filter"), to_int(request.args.get("alliance_id")))
    content = build_workbook([("Applications", export_rows(q.all()))], min_width=10, max_width=15)
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=timestamped_filename("applications", pad_hour=False),
    )


@bp.get("/api/applications/approved")
def applications_approved():
    s = db_session()
    return jsonify({"players": approved_players(s)})


@bp.get("/api/applications/<int:application_id>")
@require_auth
def application_detail(application_id: int):
    s = db_session()
    application = s.get(MigrationApplication, application_id)
    if not application:
        return jsonify({"error": "Application not found"}), 404
    return jsonify({"application": application.to_dict()})


@bp.patch("/api/applications/<int:application_id>")
@require_auth
def application_review(application_id: int):
    s = db_session()
    data = json_body(request)
    application = s.get(MigrationApplication, application_id)
    if not application:
        return jsonify({"error": "Application not found"}), 404

    reviewer: Profile = g.current_profile
    message = review_application(
        s,
        application,
        reviewer,
        g.current_user,
        stage=str(data.get("stage") or ""),
        decision=str(data.get("decision") or ""),
        note=data.get("note"),
    )
    s.commit()
    return jsonify({"success": True, "message": message, "application": application.to_dict()})
