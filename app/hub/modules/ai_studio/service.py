from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.hub import ratelimit
from app.hub.audit import record_event
from app.hub.constants import AI_IMAGE_DAILY_LIMIT, AI_IMAGE_TYPES, PRESENTATION_TONES, RESOURCE_AI_IMAGE
from app.hub.modules.ai_studio.openai_client import AIClient
from app.hub.storage import Storage, build_ai_image_key
from app.hub.utils import ServiceError, clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import Profile, User
    from app.hub.modules.ai_studio.models import AIGeneratedImage, AlliancePresentation

MAX_BULLET_POINTS = 10


def clean_bullet_points(raw: object) -> list[str]:
    if not isinstance(raw, list):
        raise ServiceError("Bullet points are required")
    points = [p.strip() for p in raw if isinstance(p, str) and p.strip()]
    if not points:
        raise ServiceError("At least one bullet point is required")
    if len(points) > MAX_BULLET_POINTS:
        raise ServiceError(f"Maximum {MAX_BULLET_POINTS} bullet points allowed")
    return points


def clean_tone(raw: object) -> str:
    tone = clean_str(raw)
    if tone not in PRESENTATION_TONES:
        raise ServiceError(f"Invalid tone. Must be one of: {', '.join(PRESENTATION_TONES)}")
    return tone


def generate_presentation_text(client: AIClient, payload: dict) -> dict:
    points = clean_bullet_points(payload.get("bulletPoints"))
    tone = clean_tone(payload.get("tone"))
    content = client.generate_presentation_text(points, tone)
    return {"content": content, "bulletPoints": points, "tone": tone}


# ---------- Presentations ----------
def list_presentations(s: "Session", alliance_id: int) -> list["AlliancePresentation"]:
    from app.hub.modules.ai_studio.models import AlliancePresentation

    return (
        s.query(AlliancePresentation)
        .filter(AlliancePresentation.alliance_id == alliance_id)
        .order_by(AlliancePresentation.created_at.desc(), AlliancePresentation.id.desc())
        .all()
    )


def save_presentation_draft(s: "Session", editor: "Profile", payload: dict, user: "User") -> "AlliancePresentation":
    from app.hub.modules.ai_studio.models import AlliancePresentation

    points = clean_bullet_points(payload.get("bulletPoints"))
    tone = clean_tone(payload.get("tone"))
    content = clean_str(payload.get("content"))
    if not content:
        raise ServiceError("Content is required")

    pres = AlliancePresentation(
        alliance_id=editor.alliance_id,
        generated_by=editor.id,
        bullet_points=points,
        tone=tone,
        content=content,
        is_published=False,
        created_at=datetime.utcnow(),
    )
    s.add(pres)
    s.flush()
    record_event(
        s,
        actor=user,
        action="presentation.create",
        entity_type="AlliancePresentation",
        entity_id=str(pres.id),
        metadata={"alliance_id": pres.alliance_id, "tone": tone},
    )
    return pres


def update_presentation(
    s: "Session", pres: "AlliancePresentation", payload: dict, user: "User"
) -> "AlliancePresentation":
    """
    Edit the text and optionally publish. Publishing copies the content into
    the alliance's public description.
    """
    content = clean_str(payload.get("content"))
    if not content:
        raise ServiceError("Content is required")
    publish = bool(payload.get("isPublished"))

    pres.content = content
    pres.is_published = publish
    if publish:
        now = datetime.utcnow()
        pres.reviewed_at = now
        from app.hub.modules.alliances.models import Alliance

        alliance = s.get(Alliance, pres.alliance_id)
        if alliance is not None:
            alliance.description = content
            alliance.updated_at = now

    record_event(
        s,
        actor=user,
        action="presentation.publish" if publish else "presentation.update",
        entity_type="AlliancePresentation",
        entity_id=str(pres.id),
        metadata={"alliance_id": pres.alliance_id},
    )
    return pres


def delete_presentation(s: "Session", pres: "AlliancePresentation", user: "User") -> None:
    if pres.is_published:
        raise ServiceError("Published presentations cannot be deleted")
    record_event(
        s,
        actor=user,
        action="presentation.delete",
        entity_type="AlliancePresentation",
        entity_id=str(pres.id),
        metadata={"alliance_id": pres.alliance_id},
    )
    s.delete(pres)


# ---------- Images ----------
def images_used_today(s: "Session", user_id: int, now: datetime | None = None) -> int:
    return ratelimit.used_in_window(s, RESOURCE_AI_IMAGE, ratelimit.start_of_utc_day(now), user_id=user_id)


def remaining_image_quota(s: "Session", user_id: int, now: datetime | None = None) -> int:
    return max(0, AI_IMAGE_DAILY_LIMIT - images_used_today(s, user_id, now))


def generate_image(
    s: "Session",
    client: AIClient,
    storage: Storage,
    profile: "Profile",
    payload: dict,
    user: "User",
    now: datetime | None = None,
) -> "AIGeneratedImage":
    from app.hub.modules.ai_studio.models import AIGeneratedImage

    prompt = clean_str(payload.get("prompt"))
    image_type = clean_str(payload.get("imageType"))
    if len(prompt) < 3 or len(prompt) > 1000:
        raise ServiceError("Prompt must be between 3 and 1000 characters")
    if image_type not in AI_IMAGE_TYPES:
        raise ServiceError(f"Invalid image type. Must be one of: {', '.join(AI_IMAGE_TYPES)}")

    now = now or datetime.utcnow()
    day_start = ratelimit.start_of_utc_day(now)
    if not ratelimit.is_allowed(s, RESOURCE_AI_IMAGE, AI_IMAGE_DAILY_LIMIT, day_start, user_id=user.id):
        raise ServiceError(f"Daily limit reached ({AI_IMAGE_DAILY_LIMIT} images per day). Try again tomorrow.", 429)

    generated = client.generate_image(prompt, image_type)
    data = client.download_image(generated.url)
    key = build_ai_image_key(user.id, image_type, now)
    storage.put_bytes(key, data, content_type="image/png")

    image = AIGeneratedImage(
        user_id=user.id,
        alliance_id=profile.alliance_id,
        storage_key=key,
        prompt=prompt,
        revised_prompt=generated.revised_prompt,
        image_type=image_type,
        created_at=now,
    )
    s.add(image)
    ratelimit.increment(s, RESOURCE_AI_IMAGE, day_start, user_id=user.id)
    s.flush()
    record_event(
        s,
        actor=user,
        action="ai_image.generate",
        entity_type="AIGeneratedImage",
        entity_id=str(image.id),
        metadata={"image_type": image_type, "storage_key": key},
    )
    return image


def list_user_images(s: "Session", user_id: int) -> list["AIGeneratedImage"]:
    from app.hub.modules.ai_studio.models import AIGeneratedImage

    return (
        s.query(AIGeneratedImage)
        .filter(AIGeneratedImage.user_id == user_id)
        .order_by(AIGeneratedImage.created_at.desc(), AIGeneratedImage.id.desc())
        .all()
    )
