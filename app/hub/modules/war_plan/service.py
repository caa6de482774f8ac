from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from app.hub.audit import record_event
from app.hub.constants import GLORY_WAR_MODE
from app.hub.utils import ServiceError, clean_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import Profile, User
    from app.hub.modules.war_plan.models import WarPlan, WarPlanAssignment, WarRosterPlayer

DEFAULT_PLAN_TITLE = "Glory War Plan"
DUPLICATE_NAME_MESSAGE = "A player with this name already exists in your alliance roster"
NO_ALLIANCE_MESSAGE = "You are not assigned to an alliance"


def active_roster(s: "Session", alliance_id: int) -> list["WarRosterPlayer"]:
    from app.hub.modules.war_plan.models import WarRosterPlayer

    return (
        s.query(WarRosterPlayer)
        .filter(WarRosterPlayer.alliance_id == alliance_id, WarRosterPlayer.is_active.is_(True))
        .order_by(WarRosterPlayer.player_name.asc())
        .all()
    )


def _validate_linked_profile(s: "Session", raw: object, alliance_id: int) -> int | None:
    from app.hub.models import Profile

    if raw in (None, "", 0, False):
        return None
    profile_id = to_int(raw)
    linked = s.get(Profile, profile_id) if profile_id is not None else None
    if not linked or linked.alliance_id != alliance_id:
        raise ServiceError("Linked account must belong to your alliance")
    return linked.id


def _flush_roster(s: "Session") -> None:
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        raise ServiceError(DUPLICATE_NAME_MESSAGE) from e


def add_roster_player(s: "Session", editor: "Profile", payload: dict, user: "User") -> "WarRosterPlayer":
    from app.hub.modules.war_plan.models import WarRosterPlayer

    alliance_id = editor.alliance_id
    if alliance_id is None:
        raise ServiceError(NO_ALLIANCE_MESSAGE)
    name = clean_str(payload.get("player_name"), 50)
    if not name:
        raise ServiceError("Player name is required")
    notes = clean_str(payload.get("notes"), 250) or None
    linked_id = _validate_linked_profile(s, payload.get("linked_profile_id"), alliance_id)

    now = datetime.utcnow()
    player = WarRosterPlayer(
        alliance_id=alliance_id,
        player_name=name,
        notes=notes,
        linked_profile_id=linked_id,
        is_active=True,
        created_at=now,
        updated_at=now,
        created_by=editor.id,
        updated_by=editor.id,
    )
    s.add(player)
    _flush_roster(s)
    record_event(
        s,
        actor=user,
        action="war_roster.create",
        entity_type="WarRosterPlayer",
        entity_id=str(player.id),
        metadata={"player_name": name, "alliance_id": alliance_id},
    )
    return player


def update_roster_player(
    s: "Session", player: "WarRosterPlayer", editor: "Profile", payload: dict, user: "User"
) -> "WarRosterPlayer":
    changes: dict = {}
    if "player_name" in payload:
        name = clean_str(payload.get("player_name"), 50)
        if not name:
            raise ServiceError("Player name cannot be empty")
        changes["player_name"] = name
    if "notes" in payload:
        changes["notes"] = clean_str(payload.get("notes"), 250) or None
    if "linked_profile_id" in payload:
        changes["linked_profile_id"] = _validate_linked_profile(s, payload.get("linked_profile_id"), player.alliance_id)
    if "is_active" in payload:
        changes["is_active"] = bool(payload.get("is_active"))
    if not changes:
        raise ServiceError("No updates provided")

    for key, value in changes.items():
        setattr(player, key, value)
    player.updated_at = datetime.utcnow()
    player.updated_by = editor.id
    _flush_roster(s)
    record_event(
        s,
        actor=user,
        action="war_roster.update",
        entity_type="WarRosterPlayer",
        entity_id=str(player.id),
        metadata={"changes": sorted(changes)},
    )
    return player


def delete_roster_player(s: "Session", player: "WarRosterPlayer", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="war_roster.delete",
        entity_type="WarRosterPlayer",
        entity_id=str(player.id),
        metadata={"player_name": player.player_name},
    )
    s.delete(player)


def get_plan(s: "Session", alliance_id: int, mode: str = GLORY_WAR_MODE) -> "WarPlan | None":
    from app.hub.modules.war_plan.models import WarPlan

    return s.query(WarPlan).filter(WarPlan.alliance_id == alliance_id, WarPlan.mode == mode).one_or_none()


def plan_assignments(s: "Session", plan: "WarPlan | None") -> list["WarPlanAssignment"]:
    from app.hub.modules.war_plan.models import WarPlanAssignment

    if plan is None:
        return []
    return (
        s.query(WarPlanAssignment)
        .filter(WarPlanAssignment.plan_id == plan.id)
        .order_by(WarPlanAssignment.team.asc(), WarPlanAssignment.position.asc())
        .all()
    )


def _id_list(raw: object) -> list[int]:
    if not isinstance(raw, list):
        return []
    out = []
    for item in raw:
        value = to_int(item)
        if value is None:
            raise ServiceError("One or more selected players are invalid for your alliance")
        out.append(value)
    return out


def save_glory_war_plan(s: "Session", editor: "Profile", payload: dict, user: "User") -> "WarPlan":
    """
    Upsert the alliance's glory war plan and replace its assignments.
    Positions are 0-based within each team, in the order given.
    """
    from app.hub.modules.war_plan.models import WarPlan, WarPlanAssignment, WarRosterPlayer

    alliance_id = editor.alliance_id
    if alliance_id is None:
        raise ServiceError(NO_ALLIANCE_MESSAGE)
    title = clean_str(payload.get("title"), 100) or DEFAULT_PLAN_TITLE
    attacker_ids = _id_list(payload.get("attackerIds"))
    defender_ids = _id_list(payload.get("defenderIds"))

    selected = attacker_ids + defender_ids
    if len(set(selected)) != len(selected):
        raise ServiceError("A player can only be assigned once")
    if selected:
        found = (
            s.query(WarRosterPlayer.id)
            .filter(WarRosterPlayer.alliance_id == alliance_id, WarRosterPlayer.id.in_(selected))
            .count()
        )
        if found != len(selected):
            raise ServiceError("One or more selected players are invalid for your alliance")

    now = datetime.utcnow()
    plan = get_plan(s, alliance_id)
    if plan is None:
        plan = WarPlan(
            alliance_id=alliance_id,
            mode=GLORY_WAR_MODE,
            title=title,
            created_at=now,
            updated_at=now,
            created_by=editor.id,
            updated_by=editor.id,
        )
        s.add(plan)
    else:
        plan.title = title
        plan.updated_at = now
        plan.updated_by = editor.id
    s.flush()

    plan.assignments.clear()
    s.flush()
    for team, ids in (("attacker", attacker_ids), ("defender", defender_ids)):
        for position, roster_id in enumerate(ids):
            plan.assignments.append(WarPlanAssignment(roster_player_id=roster_id, team=team, position=position))
    s.flush()

    record_event(
        s,
        actor=user,
        action="war_plan.save",
        entity_type="WarPlan",
        entity_id=str(plan.id),
        metadata={"title": title, "attackers": len(attacker_ids), "defenders": len(defender_ids)},
    )
    return plan


def glory_war_export_sheets(s: "Session", alliance_id: int) -> list[tuple[str, list[dict]]]:
    roster = active_roster(s, alliance_id)
    by_id = {p.id: p for p in roster}
    assignments = plan_assignments(s, get_plan(s, alliance_id))

    attackers: list[dict] = []
    defenders: list[dict] = []
    assigned: set[int] = set()
    for a in assignments:
        player = by_id.get(a.roster_player_id)
        if player is None:
            continue
        assigned.add(player.id)
        target = attackers if a.team == "attacker" else defenders
        target.append({"Position": len(target) + 1, "Player": player.player_name, "Notes": player.notes or ""})

    unassigned = [{"Player": p.player_name, "Notes": p.notes or ""} for p in roster if p.id not in assigned]

    blank_team = {"Position": "", "Player": "", "Notes": ""}
    return [
        ("Attackers", attackers or [dict(blank_team)]),
        ("Defenders", defenders or [dict(blank_team)]),
        ("Unassigned", unassigned or [{"Player": "", "Notes": ""}]),
    ]
