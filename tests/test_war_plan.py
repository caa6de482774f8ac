import io

import pytest
from openpyxl import load_workbook


@pytest.fixture()
def war(make_alliance, make_user):
    alliance_id = make_alliance("Iron Wolves")
    other_id = make_alliance("Night Owls")
    member_id, member = make_user("m@example.com", alliance_id=alliance_id, display_name="Linked Member")
    outsider_id, _ = make_user("o@example.com", alliance_id=other_id)
    return {
        "alliance_id": alliance_id,
        "member_id": member_id,
        "outsider_id": outsider_id,
        "r4": make_user("r4@example.com", role="r4", alliance_id=alliance_id)[1],
        "other_r4": make_user("or4@example.com", role="r4", alliance_id=other_id)[1],
        "homeless_r5": make_user("r5@example.com", role="r5")[1],
        "member": member,
    }


def _add(client, headers, name, **extra):
    return client.post("/api/war-plan/roster", headers=headers, json={"player_name": name, **extra})


def test_roster_crud(client, war):
    r = _add(client, war["r4"], "Alpha", notes="main tank", linked_profile_id=war["member_id"])
    assert r.status_code == 201
    alpha = r.json["player"]
    assert alpha["linked_profile_name"] == "Linked Member"
    _add(client, war["r4"], "Bravo")

    r = client.get("/api/war-plan/roster", headers=war["r4"])
    assert [p["player_name"] for p in r.json["roster"]] == ["Alpha", "Bravo"]

    r = client.patch(f"/api/war-plan/roster/{alpha['id']}", headers=war["r4"], json={"notes": "", "is_active": False})
    assert r.status_code == 200
    assert r.json["player"]["notes"] is None
    r = client.get("/api/war-plan/roster", headers=war["r4"])
    assert [p["player_name"] for p in r.json["roster"]] == ["Bravo"]

    r = client.delete(f"/api/war-plan/roster/{alpha['id']}", headers=war["r4"])
    assert r.status_code == 200
    assert client.delete(f"/api/war-plan/roster/{alpha['id']}", headers=war["r4"]).status_code == 404


def test_roster_validation(client, war):
    assert _add(client, war["r4"], "  ").status_code == 400
    assert _add(client, war["r4"], "Alpha").status_code == 201

    r = _add(client, war["r4"], "Alpha")
    assert r.status_code == 400
    assert r.json["error"] == "A player with this name already exists in your alliance roster"

    # Same name is fine in another alliance.
    assert _add(client, war["other_r4"], "Alpha").status_code == 201

    r = _add(client, war["r4"], "Charlie", linked_profile_id=war["outsider_id"])
    assert r.status_code == 400
    assert r.json["error"] == "Linked account must belong to your alliance"


def test_roster_rename_to_existing_name(client, war):
    _add(client, war["r4"], "Alpha")
    bravo_id = _add(client, war["r4"], "Bravo").json["player"]["id"]
    r = client.patch(f"/api/war-plan/roster/{bravo_id}", headers=war["r4"], json={"player_name": "Alpha"})
    assert r.status_code == 400
    assert r.json["error"] == "A player with this name already exists in your alliance roster"


def test_roster_permissions(client, war):
    assert _add(client, war["member"], "Alpha").status_code == 403
    assert client.get("/api/war-plan/roster").status_code == 401
    r = client.get("/api/war-plan/roster", headers=war["homeless_r5"])
    assert r.status_code == 400

    player_id = _add(client, war["r4"], "Alpha").json["player"]["id"]
    r = client.patch(f"/api/war-plan/roster/{player_id}", headers=war["other_r4"], json={"notes": "mine now"})
    assert r.status_code == 404


def test_save_and_load_glory_war_plan(client, war):
    ids = [_add(client, war["r4"], name).json["player"]["id"] for name in ("Alpha", "Bravo", "Charlie", "Delta")]

    r = client.get("/api/war-plan/glory-war", headers=war["r4"])
    assert r.status_code == 200
    assert r.json["plan"] is None
    assert r.json["assignments"] == []

    r = client.put(
        "/api/war-plan/glory-war",
        headers=war["r4"],
        json={"title": "Saturday", "attackerIds": [ids[2], ids[0]], "defenderIds": [ids[1]]},
    )
    assert r.status_code == 200
    assert r.json["plan"]["title"] == "Saturday"
    attackers = [a for a in r.json["assignments"] if a["team"] == "attacker"]
    assert [(a["roster_player_id"], a["position"]) for a in attackers] == [(ids[2], 0), (ids[0], 1)]

    # Saving again replaces every assignment.
    r = client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": [ids[3]], "defenderIds": []})
    assert r.status_code == 200
    assert r.json["plan"]["title"] == "Glory War Plan"
    assert [a["roster_player_id"] for a in r.json["assignments"]] == [ids[3]]

    r = client.get("/api/war-plan/glory-war", headers=war["r4"])
    assert r.json["plan"]["title"] == "Glory War Plan"
    assert len(r.json["roster"]) == 4


def test_save_plan_rejects_bad_assignments(client, war):
    alpha = _add(client, war["r4"], "Alpha").json["player"]["id"]
    foreign = _add(client, war["other_r4"], "Zulu").json["player"]["id"]

    r = client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": [alpha], "defenderIds": [alpha]})
    assert r.status_code == 400
    assert r.json["error"] == "A player can only be assigned once"

    r = client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": [foreign]})
    assert r.status_code == 400
    assert r.json["error"] == "One or more selected players are invalid for your alliance"

    r = client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": ["abc"]})
    assert r.status_code == 400


def test_deleting_roster_player_drops_assignment(client, war):
    alpha = _add(client, war["r4"], "Alpha").json["player"]["id"]
    bravo = _add(client, war["r4"], "Bravo").json["player"]["id"]
    client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": [alpha, bravo]})

    assert client.delete(f"/api/war-plan/roster/{alpha}", headers=war["r4"]).status_code == 200
    r = client.get("/api/war-plan/glory-war", headers=war["r4"])
    assert [a["roster_player_id"] for a in r.json["assignments"]] == [bravo]


def test_export_glory_war_plan(client, war):
    alpha = _add(client, war["r4"], "Alpha", notes="rally lead").json["player"]["id"]
    bravo = _add(client, war["r4"], "Bravo").json["player"]["id"]
    _add(client, war["r4"], "Charlie")
    client.put("/api/war-plan/glory-war", headers=war["r4"], json={"attackerIds": [alpha], "defenderIds": [bravo]})

    r = client.get("/api/war-plan/glory-war/export", headers=war["r4"])
    assert r.status_code == 200
    assert "glory-war-plan_" in r.headers["Content-Disposition"]

    wb = load_workbook(io.BytesIO(r.data))
    assert wb.sheetnames == ["Attackers", "Defenders", "Unassigned"]
    attackers = list(wb["Attackers"].iter_rows(values_only=True))
    assert attackers[0] == ("Position", "Player", "Notes")
    assert attackers[1] == (1, "Alpha", "rally lead")
    unassigned = list(wb["Unassigned"].iter_rows(values_only=True))
    assert unassigned[1][0] == "Charlie"


def test_roster_and_plan_need_an_alliance(app):
    from app.hub.db import session_scope
    from app.hub.models import Profile, User
    from app.hub.modules.war_plan.service import NO_ALLIANCE_MESSAGE, add_roster_player, save_glory_war_plan
    from app.hub.utils import ServiceError

    drifter = Profile(display_name="Drifter", role="r4", alliance_id=None)
    with session_scope(app) as s:
        with pytest.raises(ServiceError) as exc:
            add_roster_player(s, drifter, {"player_name": "Scout"}, User(email="d@example.com"))
        assert exc.value.message == NO_ALLIANCE_MESSAGE
        with pytest.raises(ServiceError):
            save_glory_war_plan(s, drifter, {"attackerIds": [], "defenderIds": []}, User(email="d@example.com"))
