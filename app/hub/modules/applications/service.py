from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from app.hub import ratelimit
from app.hub.audit import record_event
from app.hub.constants import (
    APPLICATION_FILTERS,
    APPLICATION_SUBMIT_HOURLY_LIMIT,
    HQ_LEVEL_MAX,
    HQ_LEVEL_MIN,
    RESOURCE_APPLICATION_SUBMIT,
    REVIEW_DECISIONS,
    REVIEW_STAGES,
    ROLE_R4,
    ROLE_R5,
)
from app.hub.rbac import is_president, is_superadmin
from app.hub.utils import ServiceError, clean_str, optional_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.hub.models import Profile, User
    from app.hub.modules.applications.models import MigrationApplication

REQUIRED_FIELDS = ("player_name", "current_server", "power_level", "hq_level", "target_alliance_id", "motivation", "topic")

EXPORT_COLUMNS = (
    "Player Name",
    "Current Server",
    "Power Level",
    "HQ Level",
    "Target Alliance",
    "Current Alliance",
    "Troop Level",
    "Arena Power",
    "Duel Points",
    "SVS Participation",
    "Alliance Status",
    "Alliance Reviewed By",
    "President Status",
    "President Reviewed By",
    "Status",
    "Submitted At",
)


def derive_status(alliance_status: str, president_status: str) -> str:
    """Overall status from the two stage outcomes."""
    if alliance_status == "rejected" or president_status == "rejected":
        return "rejected"
    if president_status == "approved":
        return "approved"
    if alliance_status == "approved":
        return "reviewing"
    return "submitted"


def validate_submission(s: "Session", payload: dict) -> dict:
    """Validate a public application form. Returns the cleaned field dict (plus the target alliance)."""
    from app.hub.modules.alliances.models import Alliance

    topic = clean_str(payload.get("topic"))
    missing = [f for f in REQUIRED_FIELDS if f != "topic" and payload.get(f) in (None, "")]
    if missing or not topic:
        raise ServiceError("Missing required fields")
    if len(topic) < 3 or len(topic) > 120:
        raise ServiceError("Topic must be between 3 and 120 characters")

    power_level = to_int(payload.get("power_level"))
    if power_level is None or power_level < 0:
        raise ServiceError("Power level must be a non-negative number")
    hq_level = to_int(payload.get("hq_level"))
    if hq_level is None or not (HQ_LEVEL_MIN <= hq_level <= HQ_LEVEL_MAX):
        raise ServiceError(f"HQ level must be between {HQ_LEVEL_MIN} and {HQ_LEVEL_MAX}")

    player_name = clean_str(payload.get("player_name"), 100)
    current_server = clean_str(payload.get("current_server"), 50)
    motivation = clean_str(payload.get("motivation"))
    if not player_name or not current_server or not motivation:
        raise ServiceError("Missing required fields")

    target_id = to_int(payload.get("target_alliance_id"))
    target = s.get(Alliance, target_id) if target_id is not None else None
    if not target:
        raise ServiceError("Selected alliance not found")

    screenshots = payload.get("screenshots")
    if not isinstance(screenshots, list):
        screenshots = []

    return {
        "player_name": player_name,
        "topic": topic,
        "current_server": current_server,
        "current_alliance": optional_str(payload.get("current_alliance"), 100),
        "power_level": power_level,
        "hq_level": hq_level,
        "troop_level": optional_str(payload.get("troop_level"), 50),
        "arena_power": to_int(payload.get("arena_power")),
        "duel_points": to_int(payload.get("duel_points")),
        "svs_participation": optional_str(payload.get("svs_participation"), 255),
        "motivation": motivation,
        "screenshots": [str(x) for x in screenshots if isinstance(x, str)][:10],
        "target_alliance": target,
    }


def submit_application(
    s: "Session", payload: dict, *, ip_address: str | None, now: datetime | None = None
) -> "MigrationApplication":
    from app.hub.modules.applications.models import MigrationApplication

    now = now or datetime.utcnow()
    data = validate_submission(s, payload)

    since = now - timedelta(hours=1)
    if not ratelimit.is_allowed(
        s, RESOURCE_APPLICATION_SUBMIT, APPLICATION_SUBMIT_HOURLY_LIMIT, since, ip_address=ip_address
    ):
        raise ServiceError("Too many applications submitted. Please try again later.", 429)

    target = data.pop("target_alliance")
    app_row = MigrationApplication(
        **data,
        target_alliance=target,
        status="submitted",
        alliance_status="pending",
        president_status="pending",
        submitted_at=now,
        updated_at=now,
        submitter_ip=ip_address,
    )
    s.add(app_row)
    ratelimit.increment(s, RESOURCE_APPLICATION_SUBMIT, now, ip_address=ip_address)
    s.flush()
    record_event(
        s,
        actor=None,
        action="application.submit",
        entity_type="MigrationApplication",
        entity_id=str(app_row.id),
        metadata={"player_name": app_row.player_name, "target_alliance_id": target.id},
    )
    return app_row


def filtered_query(s: "Session", filter_key: str | None, alliance_id: int | None) -> "Query":
    from app.hub.modules.applications.models import MigrationApplication as A

    key = (filter_key or "all").strip()
    if key not in APPLICATION_FILTERS:
        key = "all"
    q = s.query(A)
    if alliance_id is not None:
        q = q.filter(A.target_alliance_id == alliance_id)
    if key == "awaiting_alliance":
        q = q.filter(A.alliance_status == "pending")
    elif key == "awaiting_president":
        q = q.filter(A.alliance_status == "approved", A.president_status == "pending")
    elif key == "approved":
        q = q.filter(A.status == "approved")
    elif key == "rejected":
        q = q.filter(A.status == "rejected")
    return q.order_by(A.submitted_at.desc(), A.id.desc())


def can_review_alliance_stage(profile: "Profile", application: "MigrationApplication") -> bool:
    if is_superadmin(profile):
        return True
    if profile.alliance_id is None or profile.alliance_id != application.target_alliance_id:
        return False
    if profile.role == ROLE_R5:
        return True
    return profile.role == ROLE_R4 and bool(profile.can_edit_alliance)


def review_application(
    s: "Session",
    application: "MigrationApplication",
    reviewer: "Profile",
    actor: "User",
    *,
    stage: str,
    decision: str,
    note: object = None,
) -> str:
    """
    Record one stage decision and re-derive the overall status.
    Returns the human-readable outcome message.
    """
    if stage not in REVIEW_STAGES:
        raise ServiceError('Invalid stage. Must be "alliance" or "president"')
    if decision not in REVIEW_DECISIONS:
        raise ServiceError('Invalid decision. Must be "approve" or "reject"')

    new_stage_status = "approved" if decision == "approve" else "rejected"
    note_value = clean_str(note, 500) or None
    now = datetime.utcnow()

    if stage == "alliance":
        if not can_review_alliance_stage(reviewer, application):
            raise ServiceError("You can only approve applications for your alliance", 403)
        if application.president_status != "pending":
            raise ServiceError("The president has already decided on this application")
        application.alliance_status = new_stage_status
        application.alliance_reviewed_by = reviewer.id
        application.alliance_reviewer = reviewer
        application.alliance_reviewed_at = now
        application.alliance_note = note_value
    else:
        if not (is_president(reviewer) or is_superadmin(reviewer)):
            raise ServiceError("Only the president can provide final approval", 403)
        if application.alliance_status != "approved":
            raise ServiceError("The alliance must approve this application first")
        application.president_status = new_stage_status
        application.president_reviewed_by = reviewer.id
        application.president_reviewer = reviewer
        application.president_reviewed_at = now
        application.president_note = note_value

    old_status = application.status
    application.status = derive_status(application.alliance_status, application.president_status)
    application.updated_at = now

    record_event(
        s,
        actor=actor,
        action=f"application.review.{stage}",
        entity_type="MigrationApplication",
        entity_id=str(application.id),
        reason=note_value,
        metadata={"decision": decision, "old_status": old_status, "new_status": application.status},
    )
    return f"{stage.capitalize()} {new_stage_status} successfully"


def approved_players(s: "Session", limit: int = 50) -> list[dict]:
    from app.hub.modules.applications.models import MigrationApplication as A

    rows = (
        s.query(A)
        .filter(A.status == "approved")
        .order_by(A.president_reviewed_at.desc(), A.updated_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": a.id,
            "player_name": a.player_name,
            "target_alliance_name": a.target_alliance.name if a.target_alliance else "Unknown",
            "power_level": a.power_level,
            "troop_level": a.troop_level,
            "approved_at": (a.president_reviewed_at or a.updated_at).isoformat(),
        }
        for a in rows
    ]


def _fmt_dt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def export_rows(applications: list["MigrationApplication"]) -> list[dict]:
    rows = []
    for a in applications:
        values = (
            a.player_name,
            a.current_server,
            a.power_level,
            a.hq_level,
            a.target_alliance.name if a.target_alliance else "",
            a.current_alliance or "",
            a.troop_level or "",
            a.arena_power if a.arena_power is not None else "",
            a.duel_points if a.duel_points is not None else "",
            a.svs_participation or "",
            a.alliance_status,
            a.alliance_reviewer.display_name if a.alliance_reviewer else "",
            a.president_status,
            a.president_reviewer.display_name if a.president_reviewer else "",
            a.status,
            _fmt_dt(a.submitted_at),
        )
        rows.append(dict(zip(EXPORT_COLUMNS, values)))
    if not rows:
        rows.append({c: "" for c in EXPORT_COLUMNS})
    return rows
