import io

import pytest


@pytest.fixture()
def chatters(make_user):
    alice_id, alice = make_user("alice@example.com", role="r5", display_name="Alice")
    bob_id, bob = make_user("bob@example.com", role="r4", display_name="Bob")
    return {"alice_id": alice_id, "alice": alice, "bob_id": bob_id, "bob": bob}


def _upload(client, headers, data=b"\x89PNG image", filename="flag.png", mimetype="image/png"):
    return client.post(
        "/api/chat/images",
        headers=headers,
        data={"file": (io.BytesIO(data), filename, mimetype)},
        content_type="multipart/form-data",
    )


def test_send_and_fetch_messages(client, chatters):
    r = client.post("/api/chat/messages", headers=chatters["alice"], json={"content": "  NAP holds tonight  "})
    assert r.status_code == 201
    assert r.json["message"]["content"] == "NAP holds tonight"
    assert r.json["message"]["sender_name"] == "Alice"
    client.post("/api/chat/messages", headers=chatters["bob"], json={"content": "Agreed"})

    r = client.get("/api/chat/messages", headers=chatters["bob"])
    assert r.status_code == 200
    assert [m["content"] for m in r.json["messages"]] == ["NAP holds tonight", "Agreed"]
    assert r.json["messages"][0]["room_name"] == "state-244-diplomacy"

    r = client.get("/api/chat/messages?limit=1&offset=1", headers=chatters["bob"])
    assert [m["content"] for m in r.json["messages"]] == ["Agreed"]


def test_message_validation(client, chatters):
    assert client.post("/api/chat/messages", headers=chatters["alice"], json={"content": "   "}).status_code == 400
    r = client.post("/api/chat/messages", headers=chatters["alice"], json={"content": "x" * 2001})
    assert r.status_code == 400
    assert client.post("/api/chat/messages", json={"content": "hi"}).status_code == 401
    assert client.get("/api/chat/messages").status_code == 401


def test_image_upload_and_message(client, chatters):
    r = _upload(client, chatters["alice"])
    assert r.status_code == 201
    key = r.json["key"]
    assert key.startswith(f"{chatters['alice_id']}/chat/")
    assert key.endswith(".png")

    r = client.post("/api/chat/messages", headers=chatters["alice"], json={"image_key": key})
    assert r.status_code == 201
    assert r.json["message"]["image_url"] == f"/api/chat/images/{key}"
    assert r.json["message"]["content"] is None

    # Bob cannot post Alice's upload as his own.
    r = client.post("/api/chat/messages", headers=chatters["bob"], json={"content": "look", "image_key": key})
    assert r.status_code == 400

    r = client.get(f"/api/chat/images/{key}", headers=chatters["bob"])
    assert r.status_code == 200
    assert r.data == b"\x89PNG image"
    assert r.mimetype == "image/png"


def test_image_upload_validation(client, chatters):
    r = client.post("/api/chat/images", headers=chatters["alice"], data={}, content_type="multipart/form-data")
    assert r.status_code == 400
    assert _upload(client, chatters["alice"], filename="notes.txt", mimetype="text/plain").status_code == 400
    assert _upload(client, chatters["alice"], data=b"").status_code == 400
    r = _upload(client, chatters["alice"], data=b"x" * (5 * 1024 * 1024 + 1))
    assert r.status_code == 413


def test_image_fetch_is_restricted_to_chat_keys(client, chatters):
    assert client.get("/api/chat/images/ai-images/1/x.png", headers=chatters["alice"]).status_code == 404
    assert client.get(f"/api/chat/images/{chatters['alice_id']}/chat/missing.png", headers=chatters["alice"]).status_code == 404
    assert client.get(f"/api/chat/images/{chatters['alice_id']}/chat/missing.png").status_code == 401


def test_chat_activity_is_audited(client, chatters, make_user):
    client.post("/api/chat/messages", headers=chatters["alice"], json={"content": "hello"})
    _upload(client, chatters["alice"])
    _, admin = make_user("admin@example.com", role="superadmin")
    r = client.get("/api/admin/audit?action=chat.", headers=admin)
    assert sorted(e["action"] for e in r.json["events"]) == ["chat.image_upload", "chat.message"]
