from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, request, send_file

from app.hub.db import db_session
from app.hub.models import Profile
from app.hub.modules.ai_studio.models import AIGeneratedImage, AlliancePresentation
from app.hub.modules.ai_studio.openai_client import AIError, AINotConfigured, ai_client_from_config
from app.hub.modules.ai_studio.service import (
    delete_presentation,
    generate_image,
    generate_presentation_text,
    list_presentations,
    list_user_images,
    remaining_image_quota,
    save_presentation_draft,
    update_presentation,
)
from app.hub.rbac import is_superadmin, require_auth, require_permission
from app.hub.storage import StorageError, storage_from_config
from app.hub.utils import json_body, to_int

bp = Blueprint("ai_studio", __name__)

_EDIT_DENIED = "You do not have permission to manage alliance presentations"


@bp.errorhandler(AINotConfigured)
def _ai_not_configured(e: AINotConfigured):
    db_session().rollback()
    return jsonify({"error": "AI features are not configured"}), 503


@bp.errorhandler(AIError)
def _ai_failed(e: AIError):
    db_session().rollback()
    current_app.logger.warning("AI request failed: %s (request_id=%s)", e, getattr(g, "request_id", None))
    return jsonify({"error": str(e)}), 502


def _own_presentation(s, presentation_id: int | None) -> AlliancePresentation | None:
    if presentation_id is None:
        return None
    pres = s.get(AlliancePresentation, presentation_id)
    profile: Profile = g.current_profile
    if not pres or (pres.alliance_id != profile.alliance_id and not is_superadmin(profile)):
        return None
    return pres


# ---------- Text ----------
@bp.post("/api/ai/text")
@require_permission("ai.text", _EDIT_DENIED)
def ai_text():
    client = ai_client_from_config(current_app.config)
    return jsonify(generate_presentation_text(client, json_body(request)))


# ---------- Presentations ----------
@bp.get("/api/alliance/presentation")
@require_permission("ai.text", _EDIT_DENIED)
def presentations_list():
    s = db_session()
    profile: Profile = g.current_profile
    if profile.alliance_id is None:
        return jsonify({"error": "You are not assigned to an alliance"}), 400
    return jsonify({"presentations": [p.to_dict() for p in list_presentations(s, profile.alliance_id)]})


@bp.post("/api/alliance/presentation")
@require_permission("ai.text", _EDIT_DENIED)
def presentations_create():
    s = db_session()
    profile: Profile = g.current_profile
    if profile.alliance_id is None:
        return jsonify({"error": "You are not assigned to an alliance"}), 400
    pres = save_presentation_draft(s, profile, json_body(request), g.current_user)
    s.commit()
    return jsonify({"presentation": pres.to_dict()}), 201


@bp.put("/api/alliance/presentation")
@require_permission("ai.text", _EDIT_DENIED)
def presentations_update():
    s = db_session()
    data = json_body(request)
    pres = _own_presentation(s, to_int(data.get("presentationId")))
    if not pres:
        return jsonify({"error": "Presentation not found"}), 404
    update_presentation(s, pres, data, g.current_user)
    s.commit()
    return jsonify({"presentation": pres.to_dict()})


@bp.delete("/api/alliance/presentation")
@require_permission("ai.text", _EDIT_DENIED)
def presentations_delete():
    s = db_session()
    pres = _own_presentation(s, to_int(request.args.get("id")))
    if not pres:
        return jsonify({"error": "Presentation not found"}), 404
    delete_presentation(s, pres, g.current_user)
    s.commit()
    return jsonify({"success": True})


# ---------- Images ----------
@bp.post("/api/ai/image")
@require_auth
def ai_image():
    s = db_session()
    image = generate_image(
        s,
        ai_client_from_config(current_app.config),
        storage_from_config(current_app.config),
        g.current_profile,
        json_body(request),
        g.current_user,
    )
    s.commit()
    return jsonify({"image": image.to_dict(), "signedUrl": image.to_dict()["file_url"]}), 201


@bp.get("/api/ai/images")
@require_auth
def ai_images_list():
    s = db_session()
    user_id = g.current_user.id
    return jsonify(
        {
            "images": [img.to_dict() for img in list_user_images(s, user_id)],
            "remaining_today": remaining_image_quota(s, user_id),
        }
    )


@bp.get("/api/ai/images/<int:image_id>/file")
@require_auth
def ai_image_file(image_id: int):
    s = db_session()
    image = s.get(AIGeneratedImage, image_id)
    if not image or (image.user_id != g.current_user.id and not is_superadmin(g.current_profile)):
        return jsonify({"error": "Image not found"}), 404
    try:
        fobj = storage_from_config(current_app.config).open(image.storage_key)
    except StorageError:
        current_app.logger.warning("AI image missing from storage: %s", image.storage_key)
        abort(404)
    return send_file(fobj, mimetype="image/png", download_name=image.storage_key.rsplit("/", 1)[-1])
