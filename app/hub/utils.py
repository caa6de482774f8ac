from __future__ import annotations

import re
from typing import Any

from flask import Request

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ServiceError(Exception):
    """Business-rule violation raised by service functions; rendered as {"error": message}."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def json_body(req: Request) -> dict[str, Any]:
    data = req.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def clean_str(value: Any, max_len: int | None = None) -> str:
    """Trim a JSON value to a string; non-strings become ''."""
    if not isinstance(value, str):
        return ""
    out = value.strip()
    if max_len is not None:
        out = out[:max_len]
    return out


def optional_str(value: Any, max_len: int | None = None) -> str | None:
    out = clean_str(value, max_len)
    return out or None


def to_int(value: Any) -> int | None:
    """Accept ints and numeric strings; reject bools, floats with fractions and junk."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if re.fullmatch(r"-?\d+", s):
            return int(s)
    return None


def clamp(value: int, low: int, high: int | None = None) -> int:
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return value


def get_client_ip(req: Request) -> str | None:
    """First usable proxy header wins; values over 100 characters are skipped."""
    candidates = (
        (req.headers.get("x-forwarded-for") or "").split(",")[0],
        req.headers.get("x-real-ip"),
        req.headers.get("cf-connecting-ip"),
    )
    for value in candidates:
        value = (value or "").strip()
        if value and len(value) <= 100:
            return value
    return req.remote_addr


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None
