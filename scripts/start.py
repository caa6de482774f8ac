#!/usr/bin/env python3
"""
Container entrypoint: release phase (migrations + seed), then gunicorn.

gunicorn replaces this process via os.execvp so it receives signals directly.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 8080
DEFAULT_WORKERS = 2
# AI image generation plus download can take close to a minute.
DEFAULT_TIMEOUT = 120


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if not (low <= value <= high):
        raise SystemExit(f"ERROR: invalid {name}={raw!r}; expected an integer {low}-{high}.")
    return value


def gunicorn_argv(port: int, workers: int, timeout: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _env_int("PORT", DEFAULT_PORT, low=1, high=65535)
    workers = _env_int("WEB_CONCURRENCY", DEFAULT_WORKERS, low=1, high=64)
    timeout = _env_int("GUNICORN_TIMEOUT", DEFAULT_TIMEOUT, low=10, high=600)

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== State 244 Hub on 0.0.0.0:{port} ({workers} workers, {timeout}s timeout) ===", flush=True)
    argv = gunicorn_argv(port, workers, timeout)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
