import io

import pytest
from openpyxl import load_workbook

from app.hub.modules.applications.service import EXPORT_COLUMNS, derive_status


def _payload(alliance_id, **overrides):
    body = {
        "player_name": "Sir Migrates",
        "topic": "Moving from 812",
        "current_server": "812",
        "current_alliance": "Old Guard",
        "power_level": "45,000,000",
        "hq_level": 28,
        "troop_level": "T10",
        "motivation": "Looking for an active state.",
        "target_alliance_id": alliance_id,
    }
    body.update(overrides)
    return body


@pytest.fixture()
def setup(client, make_alliance, make_user):
    alliance_id = make_alliance("Iron Wolves", rank=1)
    other_id = make_alliance("Night Owls", rank=2)
    users = {
        "r5": make_user("r5@example.com", role="r5", alliance_id=alliance_id, display_name="Leader")[1],
        "r4": make_user("r4@example.com", role="r4", alliance_id=alliance_id)[1],
        "r4e": make_user("r4e@example.com", role="r4", alliance_id=alliance_id, can_edit_alliance=True)[1],
        "other_r5": make_user("o5@example.com", role="r5", alliance_id=other_id)[1],
        "president": make_user("pres@example.com", role="r5", alliance_id=other_id, is_president=True)[1],
        "member": make_user("m@example.com", alliance_id=alliance_id)[1],
        "admin": make_user("admin@example.com", role="superadmin")[1],
    }
    return {"alliance_id": alliance_id, "other_id": other_id, "users": users}


def _submit(client, body, headers=None):
    return client.post("/api/applications", json=body, headers=headers)


@pytest.mark.parametrize(
    "alliance,president,expected",
    [
        ("pending", "pending", "submitted"),
        ("approved", "pending", "reviewing"),
        ("approved", "approved", "approved"),
        ("rejected", "pending", "rejected"),
        ("approved", "rejected", "rejected"),
    ],
)
def test_derive_status(alliance, president, expected):
    assert derive_status(alliance, president) == expected


def test_submit_application(client, setup):
    r = _submit(client, _payload(setup["alliance_id"]))
    assert r.status_code == 201
    application = r.json["application"]
    assert application["status"] == "submitted"
    assert application["alliance_status"] == "pending"
    assert application["president_status"] == "pending"
    assert application["power_level"] == 45000000
    assert application["target_alliance"]["name"] == "Iron Wolves"


def test_submit_validation(client, setup):
    alliance_id = setup["alliance_id"]
    assert _submit(client, _payload(alliance_id, player_name="")).status_code == 400
    assert _submit(client, _payload(alliance_id, topic="ab")).status_code == 400
    assert _submit(client, _payload(alliance_id, hq_level=40)).status_code == 400
    assert _submit(client, _payload(alliance_id, power_level=-1)).status_code == 400
    r = _submit(client, _payload(9999))
    assert r.status_code == 400
    assert r.json["error"] == "Selected alliance not found"

    # Zero power is a legitimate value, not a missing one.
    assert _submit(client, _payload(alliance_id, power_level=0)).status_code == 201


def test_honeypot_pretends_success(client, setup):
    r = _submit(client, _payload(setup["alliance_id"], website="http://spam"))
    assert r.status_code == 200
    assert r.json == {"success": True}

    r = client.get("/api/applications", headers=setup["users"]["admin"])
    assert r.json["applications"] == []


def test_submit_rate_limited_per_ip(client, setup):
    for _ in range(5):
        assert _submit(client, _payload(setup["alliance_id"])).status_code == 201
    r = _submit(client, _payload(setup["alliance_id"]))
    assert r.status_code == 429


def test_overlong_forwarded_header_still_rate_limited(client, setup):
    headers = {"X-Forwarded-For": "a" * 101}
    for _ in range(5):
        assert _submit(client, _payload(setup["alliance_id"]), headers).status_code == 201
    r = _submit(client, _payload(setup["alliance_id"]), headers)
    assert r.status_code == 429


def test_new_application_posts_discord_webhook(app, client, setup, monkeypatch):
    calls = []

    class _Resp:
        ok = True
        status_code = 204
        text = ""

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return _Resp()

    monkeypatch.setattr("app.hub.notifications.requests.post", fake_post)
    app.config["APPLICATIONS_DISCORD_WEBHOOK_URL"] = "https://discord.example/webhook"

    r = _submit(client, _payload(setup["alliance_id"], player_name="Under_score"))
    assert r.status_code == 201
    assert len(calls) == 1
    url, payload, timeout = calls[0]
    assert url == "https://discord.example/webhook"
    assert timeout == 10
    fields = {f["name"]: f["value"] for f in payload["embeds"][0]["fields"]}
    assert fields["Player"] == "Under\\_score"
    assert fields["Target Alliance"] == "Iron Wolves"


def test_webhook_failure_does_not_fail_submission(app, client, setup, monkeypatch):
    import requests

    def boom(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr("app.hub.notifications.requests.post", boom)
    app.config["APPLICATIONS_DISCORD_WEBHOOK_URL"] = "https://discord.example/webhook"
    assert _submit(client, _payload(setup["alliance_id"])).status_code == 201


def test_two_stage_review(client, setup):
    users = setup["users"]
    app_id = _submit(client, _payload(setup["alliance_id"])).json["application"]["id"]
    url = f"/api/applications/{app_id}"

    # President cannot act before the alliance.
    r = client.patch(url, headers=users["president"], json={"stage": "president", "decision": "approve"})
    assert r.status_code == 400

    # Alliance stage needs an R5 (or flagged R4) of the target alliance.
    r = client.patch(url, headers=users["r4"], json={"stage": "alliance", "decision": "approve"})
    assert r.status_code == 403
    r = client.patch(url, headers=users["other_r5"], json={"stage": "alliance", "decision": "approve"})
    assert r.status_code == 403

    r = client.patch(url, headers=users["r5"], json={"stage": "alliance", "decision": "approve", "note": "solid"})
    assert r.status_code == 200
    assert r.json["message"] == "Alliance approved successfully"
    assert r.json["application"]["status"] == "reviewing"
    assert r.json["application"]["alliance_reviewer_name"] == "Leader"
    assert r.json["application"]["alliance_note"] == "solid"

    # Only the president (or a superadmin) decides the final stage.
    r = client.patch(url, headers=users["other_r5"], json={"stage": "president", "decision": "approve"})
    assert r.status_code == 403

    r = client.patch(url, headers=users["president"], json={"stage": "president", "decision": "approve"})
    assert r.status_code == 200
    assert r.json["application"]["status"] == "approved"

    # Alliance stage is locked once the president has decided.
    r = client.patch(url, headers=users["r5"], json={"stage": "alliance", "decision": "reject"})
    assert r.status_code == 400

    r = client.get("/api/applications/approved")
    assert r.status_code == 200
    assert [p["player_name"] for p in r.json["players"]] == ["Sir Migrates"]
    assert r.json["players"][0]["target_alliance_name"] == "Iron Wolves"


def test_alliance_rejection_and_flagged_r4(client, setup):
    users = setup["users"]
    app_id = _submit(client, _payload(setup["alliance_id"])).json["application"]["id"]
    r = client.patch(
        f"/api/applications/{app_id}", headers=users["r4e"], json={"stage": "alliance", "decision": "reject"}
    )
    assert r.status_code == 200
    assert r.json["application"]["status"] == "rejected"
    assert r.json["message"] == "Alliance rejected successfully"


def test_review_validation(client, setup):
    users = setup["users"]
    app_id = _submit(client, _payload(setup["alliance_id"])).json["application"]["id"]
    url = f"/api/applications/{app_id}"
    assert client.patch(url, headers=users["admin"], json={"stage": "council", "decision": "approve"}).status_code == 400
    assert client.patch(url, headers=users["admin"], json={"stage": "alliance", "decision": "maybe"}).status_code == 400
    assert client.patch(url, json={"stage": "alliance", "decision": "approve"}).status_code == 401
    assert client.patch("/api/applications/9999", headers=users["admin"], json={}).status_code == 404


def test_list_filters_and_permissions(client, setup):
    users = setup["users"]
    first = _submit(client, _payload(setup["alliance_id"], player_name="First")).json["application"]["id"]
    _submit(client, _payload(setup["alliance_id"], player_name="Second"))
    _submit(client, _payload(setup["other_id"], player_name="Elsewhere"))
    client.patch(f"/api/applications/{first}", headers=users["r5"], json={"stage": "alliance", "decision": "approve"})

    r = client.get("/api/applications", headers=users["r4"])
    assert r.status_code == 200
    assert len(r.json["applications"]) == 3

    r = client.get("/api/applications?filter=awaiting_alliance", headers=users["r4"])
    assert {a["player_name"] for a in r.json["applications"]} == {"Second", "Elsewhere"}

    r = client.get("/api/applications?filter=awaiting_president", headers=users["president"])
    assert [a["player_name"] for a in r.json["applications"]] == ["First"]

    r = client.get(f"/api/applications?alliance_id={setup['other_id']}", headers=users["r4"])
    assert [a["player_name"] for a in r.json["applications"]] == ["Elsewhere"]

    assert client.get("/api/applications", headers=users["member"]).status_code == 403
    assert client.get("/api/applications").status_code == 401

    r = client.get(f"/api/applications/{first}", headers=users["member"])
    assert r.status_code == 200
    assert r.json["application"]["player_name"] == "First"


def test_export_xlsx(client, setup):
    users = setup["users"]
    _submit(client, _payload(setup["alliance_id"], arena_power=1200))
    r = client.get("/api/applications/export", headers=users["r5"])
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "applications_" in r.headers["Content-Disposition"]

    wb = load_workbook(io.BytesIO(r.data))
    ws = wb["Applications"]
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0] == EXPORT_COLUMNS
    assert rows[1][0] == "Sir Migrates"
    assert rows[1][4] == "Iron Wolves"


def test_export_with_no_rows_still_has_headers(client, setup):
    r = client.get("/api/applications/export?filter=approved", headers=setup["users"]["admin"])
    assert r.status_code == 200
    ws = load_workbook(io.BytesIO(r.data))["Applications"]
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0] == EXPORT_COLUMNS
