def test_update_own_profile_clamps_numbers(client, make_user):
    _, headers = make_user("m@example.com")
    r = client.patch(
        "/api/profile",
        headers=headers,
        json={"display_name": "  Rook  ", "hq_level": 99, "power": -5, "notes": "farm account"},
    )
    assert r.status_code == 200
    profile = r.json["profile"]
    assert profile["display_name"] == "Rook"
    assert profile["hq_level"] == 35
    assert profile["power"] == 0
    assert profile["notes"] == "farm account"

    r = client.patch("/api/profile", headers=headers, json={"notes": ""})
    assert r.json["profile"]["notes"] is None


def test_update_own_profile_validation(client, make_user):
    _, headers = make_user("m@example.com")
    assert client.patch("/api/profile", headers=headers, json={"display_name": "   "}).status_code == 400
    assert client.patch("/api/profile", headers=headers, json={"hq_level": "high"}).status_code == 400
    assert client.patch("/api/profile", headers=headers, json={}).status_code == 400
    assert client.patch("/api/profile", json={"power": 1}).status_code == 401


def test_r5_edits_members_of_own_alliance_only(client, make_alliance, make_user):
    alliance_id = make_alliance("Iron Wolves")
    other_id = make_alliance("Night Owls")
    _, r5 = make_user("r5@example.com", role="r5", alliance_id=alliance_id)
    member_id, member = make_user("m@example.com", alliance_id=alliance_id)
    outsider_id, _ = make_user("o@example.com", alliance_id=other_id)
    officer_id, _ = make_user("r4@example.com", role="r4", alliance_id=alliance_id)

    r = client.put("/api/profile", headers=r5, json={"targetUserId": member_id, "power": 1500000, "can_edit_alliance": True})
    assert r.status_code == 200
    assert r.json["profile"]["power"] == 1500000
    # Only R4 carries the flag.
    assert r.json["profile"]["can_edit_alliance"] is False

    r = client.put("/api/profile", headers=r5, json={"targetUserId": officer_id, "can_edit_alliance": True})
    assert r.status_code == 200
    assert r.json["profile"]["can_edit_alliance"] is True

    r = client.put("/api/profile", headers=r5, json={"targetUserId": outsider_id, "power": 1})
    assert r.status_code == 403

    r = client.put("/api/profile", headers=member, json={"targetUserId": member_id, "power": 1})
    assert r.status_code == 403

    assert client.put("/api/profile", headers=r5, json={"power": 1}).status_code == 400
    assert client.put("/api/profile", headers=r5, json={"targetUserId": 9999, "power": 1}).status_code == 404


def test_superadmin_edits_anyone(client, make_alliance, make_user):
    other_id = make_alliance("Night Owls")
    _, admin = make_user("admin@example.com", role="superadmin")
    outsider_id, _ = make_user("o@example.com", alliance_id=other_id)

    r = client.put("/api/profile", headers=admin, json={"targetUserId": outsider_id, "hq_level": 20})
    assert r.status_code == 200
    assert r.json["profile"]["hq_level"] == 20


def test_alliance_members_list(client, make_alliance, make_user):
    alliance_id = make_alliance("Iron Wolves")
    other_id = make_alliance("Night Owls")
    _, r4 = make_user("r4@example.com", role="r4", alliance_id=alliance_id, power=10)
    make_user("big@example.com", alliance_id=alliance_id, power=900, display_name="Big")
    make_user("small@example.com", alliance_id=alliance_id, power=5, display_name="Small")
    make_user("o@example.com", alliance_id=other_id, power=10000)
    _, member = make_user("m@example.com", alliance_id=alliance_id)
    _, admin = make_user("admin@example.com", role="superadmin")

    r = client.get("/api/alliance/members", headers=r4)
    assert r.status_code == 200
    names = [m["display_name"] for m in r.json["members"]]
    assert names[0] == "Big"
    assert len(names) == 4
    assert r.json["members"][0]["email"] == "big@example.com"

    assert client.get("/api/alliance/members", headers=member).status_code == 403

    r = client.get(f"/api/alliance/members?alliance_id={other_id}", headers=admin)
    assert r.status_code == 200
    assert len(r.json["members"]) == 1
    assert client.get("/api/alliance/members", headers=admin).status_code == 400
