import pytest

from app.hub.db import session_scope
from app.hub.models import Profile, User
from app.hub.modules.state_info.models import StateInfo
from scripts.init_db import seed
from scripts.release import release_database_url
from scripts.start import gunicorn_argv


def test_seed_is_idempotent(app):
    with session_scope(app) as s:
        seed(s, admin_email="admin@state244.local", admin_password="first-pass")
    with session_scope(app) as s:
        seed(s, admin_email="admin@state244.local", admin_password="second-pass")

    with session_scope(app) as s:
        users = s.query(User).all()
        assert [u.email for u in users] == ["admin@state244.local"]
        assert s.get(Profile, users[0].id).role == "superadmin"
        sections = s.query(StateInfo).count()
        assert sections > 0

    with session_scope(app) as s:
        seed(s, admin_email="admin@state244.local", admin_password="third-pass")
        assert s.query(StateInfo).count() == sections


def test_seed_promotes_existing_account(client, make_user):
    make_user("lead@example.com", role="r4")
    with session_scope(client.application) as s:
        seed(s, admin_email="lead@example.com", admin_password="ignored")

    r = client.post("/api/auth/signin", json={"email": "lead@example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json["profile"]["role"] == "superadmin"


def test_release_database_url_guards():
    with pytest.raises(RuntimeError):
        release_database_url({})
    with pytest.raises(RuntimeError):
        release_database_url({"DATABASE_URL": "sqlite:///hub.db", "ENV": "production"})
    assert release_database_url({"DATABASE_URL": " sqlite:///hub.db "}) == "sqlite:///hub.db"
    url = "postgresql://hub@db/hub"
    assert release_database_url({"DATABASE_URL": url, "ENV": "production"}) == url


def test_gunicorn_argv():
    argv = gunicorn_argv(9000, 3, 90)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"
    assert argv[argv.index("--timeout") + 1] == "90"
