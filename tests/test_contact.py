import time

import pytest

from app.hub.modules.contact.service import validate_contact
from app.hub.utils import ServiceError


def _payload(**overrides):
    body = {
        "name": "Visitor",
        "email": "visitor@example.com",
        "topic": "alliance",
        "message": "Is Iron Wolves recruiting this season?",
        "source_path": "/contact",
        "form_started_at": time.time() * 1000 - 5000,
    }
    body.update(overrides)
    return body


def test_validate_contact_defaults_and_timing():
    data = validate_contact(_payload(topic=None, source_path=None), now_ms=time.time() * 1000)
    assert data["topic"] == "general"
    assert data["source_path"] == "/contact"

    with pytest.raises(ServiceError) as exc:
        validate_contact(_payload(form_started_at=1000), now_ms=2000)
    assert exc.value.message == "Please take a moment before submitting"

    with pytest.raises(ServiceError):
        validate_contact(_payload(form_started_at="soon"))


def test_submit_contact_message(client, make_user):
    r = client.post("/api/contact", json=_payload(), headers={"User-Agent": "pytest-browser"})
    assert r.status_code == 201
    assert r.json == {"success": True}

    _, admin = make_user("admin@example.com", role="superadmin")
    r = client.get("/api/admin/contact", headers=admin)
    assert r.status_code == 200
    msg = r.json["messages"][0]
    assert msg["topic"] == "alliance"
    assert msg["status"] == "new"
    assert msg["user_agent"] == "pytest-browser"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": ""},
        {"name": "x" * 81},
        {"email": "nope"},
        {"message": "short"},
        {"topic": "spam"},
        {"source_path": "contact"},
        {"form_started_at": None},
    ],
)
def test_submit_contact_rejects_bad_input(client, overrides):
    r = client.post("/api/contact", json=_payload(**overrides))
    assert r.status_code == 400


def test_contact_honeypot(client, make_user):
    r = client.post("/api/contact", json=_payload(website="http://spam"))
    assert r.status_code == 200
    _, admin = make_user("admin@example.com", role="superadmin")
    assert client.get("/api/admin/contact", headers=admin).json["messages"] == []


def test_contact_rate_limit(client):
    for _ in range(5):
        assert client.post("/api/contact", json=_payload()).status_code == 201
    r = client.post("/api/contact", json=_payload())
    assert r.status_code == 429


def test_contact_posts_discord_webhook(app, client, monkeypatch):
    calls = []

    class _Resp:
        ok = True
        status_code = 204
        text = ""

    monkeypatch.setattr(
        "app.hub.notifications.requests.post",
        lambda url, json=None, timeout=None: calls.append(json) or _Resp(),
    )
    app.config["CONTACT_DISCORD_WEBHOOK_URL"] = "https://discord.example/contact"
    assert client.post("/api/contact", json=_payload()).status_code == 201
    assert calls and calls[0]["username"] == "State 244 Contact Bot"


def test_inbox_search_filter_and_status_update(client, make_user):
    client.post("/api/contact", json=_payload(name="Alice", message="Question about the rules page"))
    client.post("/api/contact", json=_payload(name="Bob", topic="bug", message="The apply form is broken"))
    _, admin = make_user("admin@example.com", role="superadmin")
    _, r5 = make_user("r5@example.com", role="r5")

    r = client.get("/api/admin/contact?q=apply", headers=admin)
    assert [m["name"] for m in r.json["messages"]] == ["Bob"]

    message_id = r.json["messages"][0]["id"]
    r = client.patch(f"/api/admin/contact/{message_id}", headers=admin, json={"status": "replied"})
    assert r.status_code == 200
    assert r.json["message"]["status"] == "replied"

    r = client.get("/api/admin/contact?status=replied", headers=admin)
    assert [m["name"] for m in r.json["messages"]] == ["Bob"]
    r = client.get("/api/admin/contact?status=new", headers=admin)
    assert [m["name"] for m in r.json["messages"]] == ["Alice"]

    assert client.get("/api/admin/contact?status=bogus", headers=admin).status_code == 400
    assert client.patch(f"/api/admin/contact/{message_id}", headers=admin, json={"status": "gone"}).status_code == 400
    assert client.patch("/api/admin/contact/9999", headers=admin, json={"status": "read"}).status_code == 404
    assert client.get("/api/admin/contact", headers=r5).status_code == 403


def test_overlong_forwarded_header_falls_back_to_remote_addr(client, make_user):
    headers = {"X-Forwarded-For": "a" * 101}
    for _ in range(5):
        assert client.post("/api/contact", json=_payload(), headers=headers).status_code == 201
    assert client.post("/api/contact", json=_payload(), headers=headers).status_code == 429

    _, admin = make_user("admin@example.com", role="superadmin")
    ips = {m["ip_address"] for m in client.get("/api/admin/contact", headers=admin).json["messages"]}
    assert ips == {"127.0.0.1"}


def test_rate_limit_is_per_forwarded_client(client):
    for _ in range(5):
        assert client.post("/api/contact", json=_payload(), headers={"X-Forwarded-For": "203.0.113.7"}).status_code == 201
    r = client.post("/api/contact", json=_payload(), headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert r.status_code == 429
    r = client.post("/api/contact", json=_payload(), headers={"X-Forwarded-For": "198.51.100.2"})
    assert r.status_code == 201
