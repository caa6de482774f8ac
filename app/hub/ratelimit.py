from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.hub.models import RateLimit


def start_of_utc_day(now: datetime | None = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _window_query(s: Session, resource_type: str, since: datetime, *, user_id: int | None, ip_address: str | None):
    q = s.query(RateLimit).filter(RateLimit.resource_type == resource_type).filter(RateLimit.window_start >= since)
    if user_id is not None:
        q = q.filter(RateLimit.user_id == user_id)
    else:
        q = q.filter(RateLimit.ip_address == ip_address)
    return q


def used_in_window(
    s: Session,
    resource_type: str,
    since: datetime,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> int:
    q = _window_query(s, resource_type, since, user_id=user_id, ip_address=ip_address)
    total = q.with_entities(func.coalesce(func.sum(RateLimit.request_count), 0)).scalar()
    return int(total or 0)


def is_allowed(
    s: Session,
    resource_type: str,
    limit: int,
    since: datetime,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> bool:
    if user_id is None and not ip_address:
        return True
    return used_in_window(s, resource_type, since, user_id=user_id, ip_address=ip_address) < limit


def increment(
    s: Session,
    resource_type: str,
    window_start: datetime,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> RateLimit | None:
    """
    Bump the counter for the window beginning at window_start, creating it if needed.
    Daily limits pass the start of the day (one row per day); rolling limits pass
    the current time so every hit gets its own row.
    """
    if user_id is None and not ip_address:
        return None
    row = (
        _window_query(s, resource_type, window_start, user_id=user_id, ip_address=ip_address)
        .filter(RateLimit.window_start == window_start)
        .first()
    )
    if row:
        row.request_count += 1
        return row
    row = RateLimit(
        user_id=user_id,
        ip_address=ip_address if user_id is None else None,
        resource_type=resource_type,
        request_count=1,
        window_start=window_start,
    )
    s.add(row)
    return row

