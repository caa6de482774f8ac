from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from app.hub import create_app
from app.hub.auth import _login_attempts, issue_token
from app.hub.db import session_scope
from app.hub.models import Base, Profile, User
from app.hub.modules.alliances.models import Alliance
from app.hub.modules.state_info.models import StateInfo
from app.hub.modules.state_info.service import DEFAULT_SECTIONS


@pytest.fixture()
def app(tmp_path, monkeypatch):
    # Local storage writes under ./storage
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "OPENAI_API_KEY",
        "APPLICATIONS_DISCORD_WEBHOOK_URL",
        "CONTACT_DISCORD_WEBHOOK_URL",
    ):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_alliance(app):
    def _make(name: str, rank: int | None = None, **fields) -> int:
        with session_scope(app) as s:
            now = datetime.utcnow()
            a = Alliance(name=name, rank=rank, created_at=now, updated_at=now, **fields)
            s.add(a)
            s.flush()
            return a.id

    return _make


@pytest.fixture()
def make_user(app):
    """Creates a user + profile and returns (user_id, bearer auth headers)."""

    def _make(
        email: str,
        *,
        role: str = "member",
        alliance_id: int | None = None,
        password: str = "secret123",
        display_name: str | None = None,
        can_edit_alliance: bool = False,
        is_president: bool = False,
        power: int = 0,
    ) -> tuple[int, dict]:
        with session_scope(app) as s:
            u = User(email=email, password_hash=generate_password_hash(password), is_active=True)
            s.add(u)
            s.flush()
            s.add(
                Profile(
                    id=u.id,
                    display_name=display_name or email.split("@")[0],
                    role=role,
                    alliance_id=alliance_id,
                    can_edit_alliance=can_edit_alliance,
                    is_president=is_president,
                    power=power,
                )
            )
            raw, _ = issue_token(s, u, 24)
            user_id = u.id
        return user_id, {"Authorization": f"Bearer {raw}"}

    return _make


@pytest.fixture()
def seed_sections(app):
    with session_scope(app) as s:
        for key, title, content, order in DEFAULT_SECTIONS:
            s.add(StateInfo(section_key=key, title=title, content=content, display_order=order, is_active=True))
