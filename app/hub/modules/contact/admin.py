from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.hub.db import db_session
from app.hub.modules.contact.models import ContactMessage
from app.hub.modules.contact.service import create_contact_message, search_messages, update_message_status
from app.hub.notifications import notify_new_contact
from app.hub.rbac import require_permission
from app.hub.utils import get_client_ip, json_body

bp = Blueprint("contact", __name__)


@bp.post("/api/contact")
def contact_submit():
    data = json_body(request)
    website = data.get("website")
    if isinstance(website, str) and website.strip():
        return jsonify({"success": True}), 200

    s = db_session()
    ip_address = get_client_ip(request)
    msg = create_contact_message(
        s,
        data,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )
    s.commit()

    notify_new_contact(
        current_app.config,
        name=msg.name,
        email=msg.email,
        topic=msg.topic,
        message=msg.message,
        source_path=msg.source_path,
        ip_address=ip_address,
    )
    return jsonify({"success": True}), 201


@bp.get("/api/admin/contact")
@require_permission("admin.superadmin", "Superadmin access required")
def contact_inbox():
    s = db_session()
    messages = search_messages(
        s,
        status=request.args.get("status"),
        q=request.args.get("q"),
        limit=request.args.get("limit"),
    )
    return jsonify({"messages": [m.to_dict() for m in messages]})


@bp.patch("/api/admin/contact/<int:message_id>")
@require_permission("admin.superadmin", "Superadmin access required")
def contact_update(message_id: int):
    s = db_session()
    msg = s.get(ContactMessage, message_id)
    if not msg:
        return jsonify({"error": "Message not found"}), 404
    update_message_status(s, msg, json_body(request).get("status"), g.current_user)
    s.commit()
    return jsonify({"success": True, "message": msg.to_dict()})
