"""
Discord webhook notifications for new applications and contact messages.

Delivery is best-effort: failures are logged and never surface to the caller.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import requests

logger = logging.getLogger(__name__)

_DISCORD_ESCAPE_RE = re.compile(r"([`*_~|])")
WEBHOOK_TIMEOUT_SECONDS = 10


def escape_discord_text(value: str) -> str:
    return _DISCORD_ESCAPE_RE.sub(r"\\\1", value or "")


def _preview(text: str, limit: int) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


def post_webhook(url: str, payload: dict[str, Any]) -> bool:
    if not url:
        return False
    try:
        resp = requests.post(url, json=payload, timeout=WEBHOOK_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        logger.error("Discord webhook error: %s", e)
        return False
    if not resp.ok:
        logger.error("Discord webhook failed: %s %s", resp.status_code, resp.text[:300])
        return False
    return True


def build_application_payload(
    *,
    player_name: str,
    topic: str,
    current_server: str,
    current_alliance: str | None,
    power_level: int,
    hq_level: int,
    troop_level: str | None,
    target_alliance_name: str,
    motivation: str,
) -> dict[str, Any]:
    e = escape_discord_text
    return {
        "username": "State 244 Applications Bot",
        "embeds": [
            {
                "title": "New Migration Application",
                "color": 0x0EA5E9,
                "fields": [
                    {"name": "Player", "value": e(player_name), "inline": True},
                    {"name": "Topic", "value": e(topic), "inline": True},
                    {"name": "Current Server", "value": e(current_server), "inline": True},
                    {"name": "Current Alliance", "value": e(current_alliance or "-"), "inline": True},
                    {"name": "Target Alliance", "value": e(target_alliance_name), "inline": True},
                    {"name": "HQ / Troops", "value": e(f"HQ {hq_level} / {troop_level or '-'}"), "inline": True},
                    {"name": "Power", "value": e(f"{power_level:,}"), "inline": True},
                    {"name": "Motivation", "value": e(_preview(motivation, 700)) or "(empty)"},
                ],
                "timestamp": datetime.utcnow().isoformat() + "Z",
            }
        ],
    }


def build_contact_payload(
    *,
    name: str,
    email: str,
    topic: str,
    message: str,
    source_path: str,
    ip_address: str | None,
) -> dict[str, Any]:
    e = escape_discord_text
    return {
        "username": "State 244 Contact Bot",
        "embeds": [
            {
                "title": "New Contact Form Message",
                "color": 0x10B981,
                "fields": [
                    {"name": "Name", "value": e(name), "inline": True},
                    {"name": "Email", "value": e(email), "inline": True},
                    {"name": "Topic", "value": e(topic), "inline": True},
                    {"name": "Source", "value": e(source_path), "inline": True},
                    {"name": "IP", "value": e(ip_address or "unknown"), "inline": True},
                    {"name": "Message", "value": e(_preview(message, 800)) or "(empty)"},
                ],
                "timestamp": datetime.utcnow().isoformat() + "Z",
            }
        ],
    }


def notify_new_application(config: dict, **fields: Any) -> bool:
    return post_webhook(config.get("APPLICATIONS_DISCORD_WEBHOOK_URL") or "", build_application_payload(**fields))


def notify_new_contact(config: dict, **fields: Any) -> bool:
    return post_webhook(config.get("CONTACT_DISCORD_WEBHOOK_URL") or "", build_contact_payload(**fields))
