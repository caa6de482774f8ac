import os
import subprocess
import sys
from pathlib import Path

import pytest
from flask import Flask, request

from app.hub.utils import get_client_ip

ROOT = Path(__file__).resolve().parents[1]
LONG = "a" * 101


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "198.51.100.2"}, "203.0.113.7"),
        ({"X-Real-IP": "198.51.100.2", "CF-Connecting-IP": "192.0.2.9"}, "198.51.100.2"),
        ({"CF-Connecting-IP": "192.0.2.9"}, "192.0.2.9"),
        ({}, "10.1.2.3"),
        ({"X-Forwarded-For": LONG, "X-Real-IP": "198.51.100.2"}, "198.51.100.2"),
        ({"X-Forwarded-For": LONG, "X-Real-IP": LONG, "CF-Connecting-IP": LONG}, "10.1.2.3"),
        ({"X-Forwarded-For": " , 10.0.0.1", "CF-Connecting-IP": "192.0.2.9"}, "192.0.2.9"),
    ],
)
def test_get_client_ip_order(headers, expected):
    app = Flask(__name__)
    with app.test_request_context("/", headers=headers, environ_base={"REMOTE_ADDR": "10.1.2.3"}):
        assert get_client_ip(request) == expected


@pytest.mark.parametrize("module", ["app.hub.models", "app.hub.modules.alliances.models", "app.wsgi"])
def test_package_imports_cleanly(module, tmp_path):
    env = {**os.environ, "ENV": "test", "DATABASE_URL": f"sqlite:///{tmp_path / 'import.db'}"}
    r = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=ROOT,
        env=env,
        capture_output=True,
        text=True,
    )
    assert r.returncode == 0, r.stderr
