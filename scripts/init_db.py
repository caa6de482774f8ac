import os
import sys
from datetime import datetime
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.hub.constants import ROLE_SUPERADMIN
from app.hub.db import build_engine, make_sessionmaker, transaction
from app.hub.models import Profile, User
from app.hub.modules.state_info.models import StateInfo
from app.hub.modules.state_info.service import DEFAULT_SECTIONS


def seed(s: Session, *, admin_email: str, admin_password: str, admin_name: str = "State Admin") -> User:
    """
    Ensure the superadmin account and the default state info sections exist.
    Does NOT overwrite an existing admin's password or edited sections.
    """
    now = datetime.utcnow()
    for key, title, content, order in DEFAULT_SECTIONS:
        if not s.query(StateInfo).filter(StateInfo.section_key == key).one_or_none():
            s.add(
                StateInfo(
                    section_key=key,
                    title=title,
                    content=content,
                    display_order=order,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )

    user = s.query(User).filter(User.email == admin_email).one_or_none()
    if not user:
        user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True, created_at=now)
        s.add(user)
        s.flush()
    profile = s.get(Profile, user.id)
    if not profile:
        s.add(
            Profile(
                id=user.id,
                display_name=admin_name,
                hq_level=1,
                power=0,
                role=ROLE_SUPERADMIN,
                created_at=now,
                updated_at=now,
            )
        )
    elif profile.role != ROLE_SUPERADMIN:
        profile.role = ROLE_SUPERADMIN
        profile.can_edit_alliance = False
        profile.updated_at = now
    return user


def seed_only(*, database_url: str | None = None) -> None:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@state244.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///hub.db").strip()

    # Plain engine, no Flask app: release runs before gunicorn imports app.wsgi.
    engine = build_engine(db_url)
    with transaction(make_sessionmaker(engine)) as s:
        seed(s, admin_email=admin_email, admin_password=admin_password)
    engine.dispose()

    print("Initialized database (seed_only).")
    print(f"Superadmin email: {admin_email}")
    print("Superadmin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
