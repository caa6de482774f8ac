from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.hub.db import db_session
from app.hub.modules.state_info.models import StateInfoProposal
from app.hub.modules.state_info.service import (
    active_sections,
    cast_vote,
    create_proposal,
    get_section,
    list_proposals,
    pending_count,
    update_section,
)
from app.hub.rbac import require_permission
from app.hub.utils import json_body

bp = Blueprint("state_info", __name__)

_PROPOSE_DENIED = "R5 or superadmin required"


@bp.get("/api/state-info")
def state_info_list():
    s = db_session()
    return jsonify({"sections": [sec.to_dict() for sec in active_sections(s)]})


@bp.patch("/api/admin/state-info/<section_key>")
@require_permission("admin.superadmin", "Superadmin access required")
def state_info_update(section_key: str):
    s = db_session()
    section = get_section(s, section_key)
    if not section:
        return jsonify({"error": "Section not found"}), 404
    update_section(s, section, json_body(request), g.current_user)
    s.commit()
    return jsonify({"success": True, "section": section.to_dict()})


@bp.get("/api/state-info/proposals")
@require_permission("state_info.propose", _PROPOSE_DENIED)
def proposals_list():
    s = db_session()
    return jsonify({"proposals": [p.to_dict() for p in list_proposals(s)]})


@bp.post("/api/state-info/proposals")
@require_permission("state_info.propose", _PROPOSE_DENIED)
def proposals_create():
    s = db_session()
    proposal = create_proposal(s, g.current_profile, json_body(request), g.current_user)
    s.commit()
    return jsonify({"proposal": proposal.to_dict()}), 201


@bp.get("/api/state-info/proposals/count")
@require_permission("state_info.propose", _PROPOSE_DENIED)
def proposals_count():
    s = db_session()
    return jsonify({"count": pending_count(s)})


@bp.post("/api/state-info/proposals/<int:proposal_id>/vote")
@require_permission("state_info.propose", _PROPOSE_DENIED)
def proposals_vote(proposal_id: int):
    s = db_session()
    vote = json_body(request).get("vote")
    proposal = s.get(StateInfoProposal, proposal_id)
    if not proposal:
        return jsonify({"error": "Proposal not found"}), 404
    cast_vote(s, proposal, g.current_profile, vote, g.current_user)
    s.commit()
    return jsonify({"success": True, "vote": vote, "status": proposal.status})
