from __future__ import annotations

import hashlib
import secrets
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.hub.audit import record_event
from app.hub.constants import (
    DISPLAY_NAME_MAX,
    PASSWORD_MIN,
    ROLE_MEMBER,
    ROLE_R4,
    ROLE_R5,
    ROLE_SUPERADMIN,
    VALID_ROLES,
)
from app.hub.db import db_session
from app.hub.models import AuthToken, Profile, User
from app.hub.rbac import can_edit_alliance, capabilities, is_superadmin, require_auth
from app.hub.utils import clean_str, get_client_ip, is_valid_email, json_body, to_int

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def issue_token(s: Session, user: User, ttl_hours: int) -> tuple[str, AuthToken]:
    raw = secrets.token_urlsafe(32)
    now = datetime.utcnow()
    tok = AuthToken(
        user_id=user.id,
        token_hash=hash_token(raw),
        created_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    s.add(tok)
    return raw, tok


def resolve_token(s: Session, raw: str) -> AuthToken | None:
    if not raw:
        return None
    tok = s.query(AuthToken).filter(AuthToken.token_hash == hash_token(raw)).one_or_none()
    if not tok or tok.revoked_at is not None:
        return None
    if tok.expires_at <= datetime.utcnow():
        return None
    if not tok.user or not tok.user.is_active:
        return None
    return tok


def revoke_user_tokens(s: Session, user_id: int, *, keep_token_id: int | None = None) -> int:
    now = datetime.utcnow()
    q = s.query(AuthToken).filter(AuthToken.user_id == user_id, AuthToken.revoked_at.is_(None))
    if keep_token_id is not None:
        q = q.filter(AuthToken.id != keep_token_id)
    count = 0
    for tok in q.all():
        tok.revoked_at = now
        count += 1
    return count


def _bearer_token() -> str:
    header = request.headers.get("Authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return value.strip()


def load_current_user() -> None:
    """
    Resolves g.current_user / g.current_profile from the Authorization bearer token.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.current_profile = None
    g.current_token = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    raw = _bearer_token()
    if not raw:
        return

    try:
        s = db_session()
        tok = resolve_token(s, raw)
        if not tok:
            return
        tok.last_used_at = datetime.utcnow()
        s.commit()
        g.current_token = tok
        g.current_user = tok.user
        g.current_profile = tok.user.profile
    except Exception as e:
        current_app.logger.error("load_current_user DB error (treating as anonymous): %s", e)
        g.current_user = None
        g.current_profile = None


def _session_payload(user: User, profile: Profile | None) -> dict:
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "created_at": user.created_at.isoformat() if user.created_at else None,
            "last_sign_in_at": user.last_sign_in_at.isoformat() if user.last_sign_in_at else None,
        },
        "profile": profile.to_dict() if profile else None,
        "capabilities": capabilities(profile),
    }


@bp.post("/api/auth/signin")
def signin():
    data = json_body(request)
    email = clean_str(data.get("email")).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    ip = get_client_ip(request) or "unknown"

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400
    if not is_valid_email(email):
        return jsonify({"error": "Invalid email format"}), 400
    if _check_rate_limit(ip):
        return jsonify({"error": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            return jsonify({"error": "Invalid credentials"}), 401

        raw, tok = issue_token(s, user, int(current_app.config.get("TOKEN_TTL_HOURS") or 168))
        user.last_sign_in_at = datetime.utcnow()
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        payload = _session_payload(user, user.profile)
        payload.update({"token": raw, "expires_at": tok.expires_at.isoformat()})
        return jsonify(payload)
    except Exception:
        current_app.logger.exception("Sign-in crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.post("/api/auth/signout")
@require_auth
def signout():
    s = db_session()
    tok: AuthToken | None = getattr(g, "current_token", None)
    if tok is not None:
        tok = s.merge(tok)
        tok.revoked_at = datetime.utcnow()
    record_event(s, actor=g.current_user, action="auth.logout", entity_type="User", entity_id=str(g.current_user.id))
    s.commit()
    return jsonify({"success": True})


@bp.get("/api/auth/me")
@require_auth
def me():
    return jsonify(_session_payload(g.current_user, g.current_profile))


def validate_signup(creator: Profile, data: dict) -> tuple[dict | None, tuple[str, int] | None]:
    """
    Applies the account-creation rules for the calling officer.
    Returns (clean payload, None) or (None, (error message, status)).
    """
    email = clean_str(data.get("email")).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    display_name = clean_str(data.get("display_name"), DISPLAY_NAME_MAX)
    role = clean_str(data.get("role")) or ROLE_MEMBER

    if not email or not password or not display_name:
        return None, ("Email, password and display name are required", 400)
    if not is_valid_email(email):
        return None, ("Invalid email format", 400)
    if len(password) < PASSWORD_MIN:
        return None, (f"Password must be at least {PASSWORD_MIN} characters", 400)
    if role not in VALID_ROLES:
        return None, ("Invalid role", 400)

    if not can_edit_alliance(creator):
        return None, ("Insufficient permissions", 403)

    if is_superadmin(creator):
        alliance_id = to_int(data.get("alliance_id"))
    else:
        if role in (ROLE_SUPERADMIN, ROLE_R5):
            return None, ("Only superadmins can create superadmin or R5 accounts", 403)
        if creator.role == ROLE_R4 and role != ROLE_MEMBER:
            return None, ("R4 officers can only create member accounts", 403)
        if creator.alliance_id is None:
            return None, ("You are not assigned to an alliance", 400)
        requested = to_int(data.get("alliance_id"))
        if requested is not None and requested != creator.alliance_id:
            return None, ("You can only create accounts in your own alliance", 403)
        alliance_id = creator.alliance_id

    return {
        "email": email,
        "password": password,
        "display_name": display_name,
        "role": role,
        "alliance_id": alliance_id,
        "can_edit_alliance": bool(data.get("can_edit_alliance")) and role == ROLE_R4,
    }, None


def create_account(s: Session, payload: dict) -> User:
    now = datetime.utcnow()
    user = User(
        email=payload["email"],
        password_hash=generate_password_hash(payload["password"]),
        is_active=True,
        created_at=now,
    )
    s.add(user)
    s.flush()
    profile = Profile(
        id=user.id,
        display_name=payload["display_name"],
        hq_level=1,
        power=0,
        role=payload["role"],
        alliance_id=payload.get("alliance_id"),
        can_edit_alliance=bool(payload.get("can_edit_alliance")),
        is_president=False,
        created_at=now,
        updated_at=now,
    )
    s.add(profile)
    s.flush()
    user.profile = profile
    return user


@bp.post("/api/auth/signup")
@require_auth
def signup():
    s = db_session()
    creator: Profile = g.current_profile
    payload, err = validate_signup(creator, json_body(request))
    if err:
        return jsonify({"error": err[0]}), err[1]

    if s.query(User).filter(User.email == payload["email"]).one_or_none():
        return jsonify({"error": "A user with this email already exists"}), 409

    try:
        user = create_account(s, payload)
        record_event(
            s,
            actor=g.current_user,
            action="user.create",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"email": user.email, "role": payload["role"], "alliance_id": payload["alliance_id"]},
        )
        s.commit()
    except IntegrityError:
        s.rollback()
        return jsonify({"error": "A user with this email already exists"}), 409

    return jsonify({"success": True, "user": {"id": user.id, "email": user.email}, "profile": user.profile.to_dict()}), 201


@bp.post("/api/auth/password")
@require_auth
def change_password():
    s = db_session()
    data = json_body(request)
    current = data.get("current_password") if isinstance(data.get("current_password"), str) else ""
    new = data.get("new_password") if isinstance(data.get("new_password"), str) else ""
    user: User = s.merge(g.current_user)

    if not current or not new:
        return jsonify({"error": "Current and new password are required"}), 400
    if len(new) < PASSWORD_MIN:
        return jsonify({"error": f"Password must be at least {PASSWORD_MIN} characters"}), 400
    if not check_password_hash(user.password_hash, current):
        return jsonify({"error": "Current password is incorrect"}), 400

    user.password_hash = generate_password_hash(new)
    tok: AuthToken | None = getattr(g, "current_token", None)
    revoked = revoke_user_tokens(s, user.id, keep_token_id=tok.id if tok else None)
    record_event(
        s,
        actor=user,
        action="auth.password_change",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"revoked_tokens": revoked},
    )
    s.commit()
    return jsonify({"success": True})
