from __future__ import annotations

import mimetypes

from flask import Blueprint, abort, current_app, g, jsonify, request, send_file

from app.hub.audit import record_event
from app.hub.db import db_session
from app.hub.modules.chat.service import fetch_messages, send_message, store_chat_image
from app.hub.rbac import require_auth
from app.hub.storage import StorageError, storage_from_config
from app.hub.utils import json_body

bp = Blueprint("chat", __name__)


@bp.get("/api/chat/messages")
@require_auth
def chat_messages():
    s = db_session()
    messages = fetch_messages(s, request.args.get("limit"), request.args.get("offset"))
    return jsonify({"messages": [m.to_dict() for m in messages]})


@bp.post("/api/chat/messages")
@require_auth
def chat_send():
    s = db_session()
    msg = send_message(s, g.current_profile, json_body(request))
    record_event(
        s,
        actor=g.current_user,
        action="chat.message",
        entity_type="ChatMessage",
        entity_id=str(msg.id),
        metadata={"has_image": bool(msg.image_key)},
    )
    s.commit()
    return jsonify({"message": msg.to_dict()}), 201


@bp.post("/api/chat/images")
@require_auth
def chat_image_upload():
    s = db_session()
    key = store_chat_image(storage_from_config(current_app.config), g.current_profile, request.files.get("file"))
    record_event(s, actor=g.current_user, action="chat.image_upload", entity_type="ChatImage", entity_id=key)
    s.commit()
    return jsonify({"key": key, "url": f"/api/chat/images/{key}"}), 201


@bp.get("/api/chat/images/<path:key>")
@require_auth
def chat_image(key: str):
    if "/chat/" not in key:
        abort(404)
    try:
        fobj = storage_from_config(current_app.config).open(key)
    except StorageError:
        abort(404)
    mimetype = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return send_file(fobj, mimetype=mimetype, download_name=key.rsplit("/", 1)[-1])
