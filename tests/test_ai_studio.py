import pytest

from app.hub.modules.ai_studio.openai_client import (
    AIClient,
    AIError,
    GeneratedImage,
    build_presentation_prompts,
    enhance_image_prompt,
)


@pytest.fixture()
def crew(make_alliance, make_user):
    alliance_id = make_alliance("Iron Wolves", description="Old description")
    other_id = make_alliance("Night Owls")
    return {
        "alliance_id": alliance_id,
        "r5": make_user("r5@example.com", role="r5", alliance_id=alliance_id)[1],
        "r4": make_user("r4@example.com", role="r4", alliance_id=alliance_id)[1],
        "other_r5": make_user("o5@example.com", role="r5", alliance_id=other_id)[1],
        "member_id": make_user("m@example.com", alliance_id=alliance_id)[0],
    }


@pytest.fixture()
def fake_openai(monkeypatch):
    calls = {"text": [], "image": []}

    def fake_text(self, bullet_points, tone):
        calls["text"].append((bullet_points, tone))
        return f"A {tone} pitch: " + "; ".join(bullet_points)

    def fake_image(self, prompt, image_type):
        calls["image"].append((prompt, image_type))
        return GeneratedImage(url="https://images.example/generated.png", revised_prompt=f"revised {prompt}")

    monkeypatch.setattr(AIClient, "generate_presentation_text", fake_text)
    monkeypatch.setattr(AIClient, "generate_image", fake_image)
    monkeypatch.setattr(AIClient, "download_image", lambda self, url: b"\x89PNG fake bytes")
    return calls


def test_prompt_builders():
    system_prompt, user_prompt = build_presentation_prompts(["We win KvK", "Active 24/7"], "casual")
    assert "1. We win KvK" in user_prompt
    assert "2. Active 24/7" in user_prompt
    assert system_prompt

    assert enhance_image_prompt("a wolf", "emblem").endswith("a wolf")
    assert enhance_image_prompt("a wolf", "banner") != enhance_image_prompt("a wolf", "emblem")


def test_text_generation_without_api_key_is_503(client, crew):
    r = client.post("/api/ai/text", headers=crew["r5"], json={"bulletPoints": ["Active"], "tone": "formal"})
    assert r.status_code == 503
    assert r.json["error"] == "AI features are not configured"


def test_text_generation(client, crew, fake_openai):
    r = client.post(
        "/api/ai/text",
        headers=crew["r5"],
        json={"bulletPoints": ["  Active daily ", "", "Top 3 in KvK"], "tone": "enthusiastic"},
    )
    assert r.status_code == 200
    assert r.json["bulletPoints"] == ["Active daily", "Top 3 in KvK"]
    assert r.json["content"].startswith("A enthusiastic pitch")

    assert client.post("/api/ai/text", headers=crew["r5"], json={"bulletPoints": ["x"], "tone": "angry"}).status_code == 400
    assert client.post("/api/ai/text", headers=crew["r5"], json={"bulletPoints": [], "tone": "formal"}).status_code == 400
    r = client.post("/api/ai/text", headers=crew["r5"], json={"bulletPoints": [str(i) for i in range(11)], "tone": "formal"})
    assert r.status_code == 400
    assert client.post("/api/ai/text", headers=crew["r4"], json={"bulletPoints": ["x"], "tone": "formal"}).status_code == 403


def test_text_generation_failure_is_502(client, crew, monkeypatch):
    def broken(self, bullet_points, tone):
        raise AIError("Failed to generate presentation text. Please try again.")

    monkeypatch.setattr(AIClient, "generate_presentation_text", broken)
    r = client.post("/api/ai/text", headers=crew["r5"], json={"bulletPoints": ["x"], "tone": "formal"})
    assert r.status_code == 502


def test_presentation_draft_publish_and_delete(client, crew):
    body = {"bulletPoints": ["Active"], "tone": "formal", "content": "Iron Wolves welcome you."}
    r = client.post("/api/alliance/presentation", headers=crew["r5"], json=body)
    assert r.status_code == 201
    draft = r.json["presentation"]
    assert draft["is_published"] is False

    r = client.get("/api/alliance/presentation", headers=crew["r5"])
    assert [p["id"] for p in r.json["presentations"]] == [draft["id"]]

    # Other alliances cannot see or touch it.
    r = client.put(
        "/api/alliance/presentation",
        headers=crew["other_r5"],
        json={"presentationId": draft["id"], "content": "hijack", "isPublished": True},
    )
    assert r.status_code == 404

    r = client.put(
        "/api/alliance/presentation",
        headers=crew["r5"],
        json={"presentationId": draft["id"], "content": "Iron Wolves: the final word.", "isPublished": True},
    )
    assert r.status_code == 200
    assert r.json["presentation"]["is_published"] is True
    alliance = client.get(f"/api/alliances/{crew['alliance_id']}").json["alliance"]
    assert alliance["description"] == "Iron Wolves: the final word."

    r = client.delete(f"/api/alliance/presentation?id={draft['id']}", headers=crew["r5"])
    assert r.status_code == 400

    second = client.post("/api/alliance/presentation", headers=crew["r5"], json=body).json["presentation"]
    r = client.delete(f"/api/alliance/presentation?id={second['id']}", headers=crew["r5"])
    assert r.status_code == 200
    assert client.delete("/api/alliance/presentation?id=9999", headers=crew["r5"]).status_code == 404


def test_presentation_validation(client, crew):
    r = client.post("/api/alliance/presentation", headers=crew["r5"], json={"bulletPoints": ["x"], "tone": "formal"})
    assert r.status_code == 400
    r = client.post("/api/alliance/presentation", headers=crew["r4"], json={"bulletPoints": ["x"], "tone": "formal", "content": "y"})
    assert r.status_code == 403


def test_image_generation_and_daily_limit(client, crew, fake_openai):
    for i in range(5):
        r = client.post("/api/ai/image", headers=crew["r4"], json={"prompt": f"wolf banner {i}", "imageType": "banner"})
        assert r.status_code == 201, r.json
    image = r.json["image"]
    assert image["revised_prompt"] == "revised wolf banner 4"
    assert r.json["signedUrl"] == f"/api/ai/images/{image['id']}/file"

    r = client.post("/api/ai/image", headers=crew["r4"], json={"prompt": "one more", "imageType": "banner"})
    assert r.status_code == 429
    assert len(fake_openai["image"]) == 5

    r = client.get("/api/ai/images", headers=crew["r4"])
    assert len(r.json["images"]) == 5
    assert r.json["remaining_today"] == 0

    # Quota is per user.
    r = client.get("/api/ai/images", headers=crew["r5"])
    assert r.json["images"] == []
    assert r.json["remaining_today"] == 5


def test_image_file_access(client, crew, fake_openai):
    image = client.post("/api/ai/image", headers=crew["r4"], json={"prompt": "a wolf", "imageType": "emblem"}).json["image"]

    r = client.get(f"/api/ai/images/{image['id']}/file", headers=crew["r4"])
    assert r.status_code == 200
    assert r.mimetype == "image/png"
    assert r.data == b"\x89PNG fake bytes"

    assert client.get(f"/api/ai/images/{image['id']}/file", headers=crew["r5"]).status_code == 404
    assert client.get(f"/api/ai/images/{image['id']}/file").status_code == 401


def test_image_validation(client, crew, fake_openai):
    assert client.post("/api/ai/image", headers=crew["r4"], json={"prompt": "ab", "imageType": "banner"}).status_code == 400
    assert client.post("/api/ai/image", headers=crew["r4"], json={"prompt": "a wolf", "imageType": "poster"}).status_code == 400
    assert fake_openai["image"] == []


def test_failed_image_generation_does_not_use_quota(client, crew, monkeypatch):
    def broken(self, prompt, image_type):
        raise AIError("Failed to generate image. Please try again.")

    monkeypatch.setattr(AIClient, "generate_image", broken)
    r = client.post("/api/ai/image", headers=crew["r4"], json={"prompt": "a wolf", "imageType": "banner"})
    assert r.status_code == 502
    assert client.get("/api/ai/images", headers=crew["r4"]).json["remaining_today"] == 5
