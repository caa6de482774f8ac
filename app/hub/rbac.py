from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.hub.constants import OFFICER_ROLES, ROLE_R4, ROLE_R5, ROLE_SUPERADMIN
from app.hub.models import Profile


def is_superadmin(profile: Profile | None) -> bool:
    return bool(profile and profile.role == ROLE_SUPERADMIN)


def is_officer(profile: Profile | None) -> bool:
    return bool(profile and profile.role in OFFICER_ROLES)


def is_admin(profile: Profile | None) -> bool:
    """R5 leaders and superadmins."""
    return bool(profile and profile.role in (ROLE_R5, ROLE_SUPERADMIN))


def is_president(profile: Profile | None) -> bool:
    return bool(profile and profile.is_president)


def can_edit_alliance(profile: Profile | None) -> bool:
    if not profile:
        return False
    if profile.role in (ROLE_SUPERADMIN, ROLE_R5):
        return True
    return profile.role == ROLE_R4 and bool(profile.can_edit_alliance)


# Permission key -> predicate over the caller's profile.
PERMISSIONS: dict[str, Callable[[Profile | None], bool]] = {
    "admin.superadmin": is_superadmin,
    "alliance.view": is_officer,
    "alliance.edit": can_edit_alliance,
    "members.view": is_officer,
    "members.edit": is_admin,
    "applications.view": lambda p: is_officer(p) or is_president(p),
    "state_info.propose": is_admin,
    "war_plan.edit": is_officer,
    "ai.text": can_edit_alliance,
}


def capabilities(profile: Profile | None) -> dict[str, bool]:
    return {
        "is_officer": is_officer(profile),
        "is_admin": is_admin(profile),
        "is_superadmin": is_superadmin(profile),
        "is_president": is_president(profile),
        "can_edit_alliance": can_edit_alliance(profile),
    }


def user_has_permission(profile: Profile | None, permission_key: str) -> bool:
    if not profile or not profile.user or not profile.user.is_active:
        return False
    check = PERMISSIONS.get(permission_key)
    return bool(check and check(profile))


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if not getattr(g, "current_user", None):
            return jsonify({"error": "Authentication required"}), 401
        if not getattr(g, "current_profile", None):
            return jsonify({"error": "Profile not found"}), 404
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str, message: str = "Insufficient permissions") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            # Unauthenticated -> 401, authenticated but unauthorized -> 403
            if not getattr(g, "current_user", None):
                return jsonify({"error": "Authentication required"}), 401
            profile: Profile | None = getattr(g, "current_profile", None)
            if not profile:
                return jsonify({"error": "Profile not found"}), 404
            if not user_has_permission(profile, permission_key):
                g.missing_permission = permission_key
                return jsonify({"error": message}), 403
            return fn(*args, **kwargs)

        return wrapped

    return decorator
