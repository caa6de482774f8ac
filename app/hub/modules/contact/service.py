from __future__ import annotations

import math
import re
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from app.hub.audit import record_event
from app.hub.constants import CONTACT_HOURLY_LIMIT, CONTACT_STATUSES, CONTACT_TOPICS
from app.hub.utils import ServiceError, clamp, clean_str, is_valid_email, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.hub.models import User
    from app.hub.modules.contact.models import ContactMessage

# Bot friction: the form must have been open at least this long.
MIN_FORM_OPEN_MS = 1500
_SEARCH_STRIP_RE = re.compile(r"[%_,]")


def _form_started_at(value) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        started = float(value)
    except (TypeError, ValueError):
        return None
    return started if math.isfinite(started) else None


def validate_contact(payload: dict, *, now_ms: float | None = None) -> dict:
    name = clean_str(payload.get("name"))
    email = clean_str(payload.get("email"))
    topic_raw = payload.get("topic")
    topic = topic_raw.strip().lower() if isinstance(topic_raw, str) else "general"
    message = clean_str(payload.get("message"))
    source_raw = payload.get("source_path")
    source_path = source_raw.strip() if isinstance(source_raw, str) else "/contact"

    if not name or not email or not message:
        raise ServiceError("Missing required fields")
    if len(name) > 80:
        raise ServiceError("Name must be 80 characters or less")
    if not is_valid_email(email) or len(email) > 255:
        raise ServiceError("Please enter a valid email address")
    if len(message) < 10 or len(message) > 4000:
        raise ServiceError("Message must be between 10 and 4000 characters")
    if topic not in CONTACT_TOPICS:
        raise ServiceError("Invalid topic")
    if len(source_path) > 200 or not source_path.startswith("/"):
        raise ServiceError("Invalid source path")

    started = _form_started_at(payload.get("form_started_at"))
    if started is None:
        raise ServiceError("Invalid submission metadata")
    now_ms = now_ms if now_ms is not None else time.time() * 1000
    if now_ms - started < MIN_FORM_OPEN_MS:
        raise ServiceError("Please take a moment before submitting")

    return {"name": name, "email": email, "topic": topic, "message": message, "source_path": source_path}


def recent_count_for_ip(s: "Session", ip_address: str, now: datetime | None = None) -> int:
    from app.hub.modules.contact.models import ContactMessage

    since = (now or datetime.utcnow()) - timedelta(hours=1)
    return (
        s.query(ContactMessage)
        .filter(ContactMessage.ip_address == ip_address, ContactMessage.created_at >= since)
        .count()
    )


def create_contact_message(
    s: "Session",
    payload: dict,
    *,
    ip_address: str | None,
    user_agent: str | None,
    now_ms: float | None = None,
) -> "ContactMessage":
    from app.hub.modules.contact.models import ContactMessage

    data = validate_contact(payload, now_ms=now_ms)
    if ip_address and recent_count_for_ip(s, ip_address) >= CONTACT_HOURLY_LIMIT:
        raise ServiceError("Too many messages sent from this network. Please try again later.", 429)

    msg = ContactMessage(
        **data,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        status="new",
        created_at=datetime.utcnow(),
    )
    s.add(msg)
    s.flush()
    record_event(
        s,
        actor=None,
        action="contact.submit",
        entity_type="ContactMessage",
        entity_id=str(msg.id),
        metadata={"topic": msg.topic, "source_path": msg.source_path},
    )
    return msg


def search_messages(
    s: "Session", *, status: str | None = None, q: str | None = None, limit: object = None
) -> list["ContactMessage"]:
    from app.hub.modules.contact.models import ContactMessage

    query = s.query(ContactMessage)
    status = (status or "").strip()
    if status:
        if status not in CONTACT_STATUSES:
            raise ServiceError("Invalid status")
        query = query.filter(ContactMessage.status == status)
    term = _SEARCH_STRIP_RE.sub("", (q or "").strip())
    if term:
        like = f"%{term}%"
        query = query.filter(
            ContactMessage.name.ilike(like) | ContactMessage.email.ilike(like) | ContactMessage.message.ilike(like)
        )
    n = to_int(limit)
    n = clamp(n if n is not None else 100, 1, 200)
    return query.order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc()).limit(n).all()


def update_message_status(s: "Session", msg: "ContactMessage", status: object, user: "User") -> "ContactMessage":
    new_status = clean_str(status)
    if new_status not in CONTACT_STATUSES:
        raise ServiceError(f"Invalid status. Must be one of: {', '.join(CONTACT_STATUSES)}")
    old = msg.status
    msg.status = new_status
    record_event(
        s,
        actor=user,
        action="contact.status_update",
        entity_type="ContactMessage",
        entity_id=str(msg.id),
        metadata={"old": old, "new": new_status},
    )
    return msg
