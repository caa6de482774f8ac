from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.hub.audit import apply_changes, record_event
from app.hub.constants import PROPOSAL_APPROVALS_REQUIRED, REVIEW_DECISIONS
from app.hub.rbac import is_superadmin
from app.hub.utils import ServiceError, clean_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import Profile, User
    from app.hub.modules.state_info.models import StateInfo, StateInfoProposal

# Seeded by scripts/init_db.py when missing.
DEFAULT_SECTIONS = (
    ("story", "Our Story", "State 244 was founded by alliances who wanted a fair, organized server.", 1),
    ("rules", "State Rules", "Respect the NAP agreements, the farm rules and the event schedule.", 2),
    ("server_info", "Server Info", "Server details, event times and migration windows.", 3),
)


def active_sections(s: "Session") -> list["StateInfo"]:
    from app.hub.modules.state_info.models import StateInfo

    return (
        s.query(StateInfo)
        .filter(StateInfo.is_active.is_(True))
        .order_by(StateInfo.display_order.asc(), StateInfo.id.asc())
        .all()
    )


def get_section(s: "Session", section_key: str) -> "StateInfo | None":
    from app.hub.modules.state_info.models import StateInfo

    return s.query(StateInfo).filter(StateInfo.section_key == section_key).one_or_none()


def update_section(s: "Session", section: "StateInfo", payload: dict, user: "User") -> "StateInfo":
    changes = {}
    if "title" in payload:
        title = clean_str(payload.get("title"), 200)
        if not title:
            raise ServiceError("Title cannot be empty")
        changes["title"] = title
    if "content" in payload:
        if not isinstance(payload.get("content"), str):
            raise ServiceError("Content must be text")
        changes["content"] = payload["content"]
    if "display_order" in payload:
        order = to_int(payload.get("display_order"))
        if order is None:
            raise ServiceError("display_order must be a number")
        changes["display_order"] = order
    if "is_active" in payload:
        changes["is_active"] = bool(payload.get("is_active"))
    if not changes:
        raise ServiceError("No updates provided")

    diff = apply_changes(section, changes)
    section.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="state_info.update",
        entity_type="StateInfo",
        entity_id=section.section_key,
        metadata={"changes": diff},
    )
    return section


def list_proposals(s: "Session") -> list["StateInfoProposal"]:
    from app.hub.modules.state_info.models import StateInfoProposal

    return s.query(StateInfoProposal).order_by(StateInfoProposal.created_at.desc(), StateInfoProposal.id.desc()).all()


def pending_count(s: "Session") -> int:
    from app.hub.modules.state_info.models import StateInfoProposal

    return s.query(StateInfoProposal).filter(StateInfoProposal.status == "pending").count()


def create_proposal(s: "Session", proposer: "Profile", payload: dict, user: "User") -> "StateInfoProposal":
    """
    File a change proposal for an existing section. A superadmin's own
    proposal starts with their approve vote already counted.
    """
    from app.hub.modules.state_info.models import StateInfoProposal, StateInfoVote

    section_key = clean_str(payload.get("section_key"), 64)
    title = clean_str(payload.get("proposed_title"), 200)
    content = clean_str(payload.get("proposed_content"))
    if not section_key or not title or not content:
        raise ServiceError("Missing required fields")
    if not get_section(s, section_key):
        raise ServiceError("Invalid section key")

    now = datetime.utcnow()
    proposal = StateInfoProposal(
        section_key=section_key,
        proposed_title=title,
        proposed_content=content,
        proposed_by=proposer.id,
        status="pending",
        created_at=now,
    )
    s.add(proposal)
    s.flush()
    if is_superadmin(proposer):
        proposal.votes.append(StateInfoVote(voter_id=proposer.id, vote="approve", voted_at=now))
    record_event(
        s,
        actor=user,
        action="state_info.propose",
        entity_type="StateInfoProposal",
        entity_id=str(proposal.id),
        metadata={"section_key": section_key, "auto_vote": is_superadmin(proposer)},
    )
    s.flush()
    return proposal


def cast_vote(
    s: "Session", proposal: "StateInfoProposal", voter: "Profile", vote: object, user: "User"
) -> "StateInfoProposal":
    """
    Record one vote. A single reject closes the proposal; reaching the approval
    threshold applies the proposed title and content to the section.
    """
    from app.hub.modules.state_info.models import StateInfoVote

    if vote not in REVIEW_DECISIONS:
        raise ServiceError("Invalid vote")
    if proposal.status != "pending":
        raise ServiceError("Proposal is no longer pending")
    if any(v.voter_id == voter.id for v in proposal.votes):
        raise ServiceError("You have already voted")

    now = datetime.utcnow()
    proposal.votes.append(StateInfoVote(voter_id=voter.id, vote=str(vote), voted_at=now))
    s.flush()

    if vote == "reject":
        proposal.status = "rejected"
        proposal.resolved_at = now
    elif sum(1 for v in proposal.votes if v.vote == "approve") >= PROPOSAL_APPROVALS_REQUIRED:
        section = get_section(s, proposal.section_key)
        if section is None:
            raise ServiceError("Section no longer exists", 409)
        section.title = proposal.proposed_title
        section.content = proposal.proposed_content
        section.updated_at = now
        proposal.status = "approved"
        proposal.resolved_at = now

    record_event(
        s,
        actor=user,
        action="state_info.vote",
        entity_type="StateInfoProposal",
        entity_id=str(proposal.id),
        metadata={"vote": vote, "status": proposal.status},
    )
    return proposal
