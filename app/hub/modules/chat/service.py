from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.hub.constants import CHAT_IMAGE_MAX_BYTES, CHAT_IMAGE_TYPES, CHAT_MESSAGE_MAX, CHAT_ROOM
from app.hub.storage import Storage, build_chat_image_key
from app.hub.utils import ServiceError, clamp, clean_str, to_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from werkzeug.datastructures import FileStorage
    from app.hub.models import Profile
    from app.hub.modules.chat.models import ChatMessage


def fetch_messages(s: "Session", limit: object = None, offset: object = None) -> list["ChatMessage"]:
    from app.hub.modules.chat.models import ChatMessage

    n = to_int(limit)
    n = clamp(n if n is not None else 50, 1, 100)
    start = max(0, to_int(offset) or 0)
    return (
        s.query(ChatMessage)
        .filter(ChatMessage.room_name == CHAT_ROOM)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .offset(start)
        .limit(n)
        .all()
    )


def _owns_image_key(profile: "Profile", key: str) -> bool:
    return key.startswith(f"{profile.id}/chat/")


def send_message(s: "Session", sender: "Profile", payload: dict) -> "ChatMessage":
    from app.hub.modules.chat.models import ChatMessage

    content = clean_str(payload.get("content"))
    image_key = clean_str(payload.get("image_key"), 512) or None
    if not content and not image_key:
        raise ServiceError("Message content or an image is required")
    if len(content) > CHAT_MESSAGE_MAX:
        raise ServiceError(f"Message must be {CHAT_MESSAGE_MAX} characters or less")
    if image_key and not _owns_image_key(sender, image_key):
        raise ServiceError("Invalid image")

    msg = ChatMessage(
        room_name=CHAT_ROOM,
        sender_id=sender.id,
        content=content or None,
        image_key=image_key,
        created_at=datetime.utcnow(),
    )
    s.add(msg)
    s.flush()
    return msg


def store_chat_image(storage: Storage, sender: "Profile", upload: "FileStorage | None") -> str:
    if upload is None or not upload.filename:
        raise ServiceError("No file uploaded")
    mimetype = (upload.mimetype or "").lower()
    if mimetype not in CHAT_IMAGE_TYPES:
        raise ServiceError("Only image uploads are allowed")
    data = upload.read()
    if not data:
        raise ServiceError("Uploaded file is empty")
    if len(data) > CHAT_IMAGE_MAX_BYTES:
        raise ServiceError("Image must be 5MB or smaller", 413)
    key = build_chat_image_key(sender.id, upload.filename)
    storage.put_bytes(key, data, content_type=mimetype)
    return key
