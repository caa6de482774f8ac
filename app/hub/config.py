"""
Environment-driven configuration. `.env` is loaded by the app factory first.

Every setting is a plain string or int on app.config; empty optional values
(S3 credentials, OpenAI key, Discord webhooks) switch the matching feature off
rather than failing at startup.
"""

import os

# (config key, default)
_STRING_SETTINGS: tuple[tuple[str, str], ...] = (
    ("SECRET_KEY", "change-me"),
    ("ENV", "development"),
    ("DATABASE_URL", "sqlite:///hub.db"),
    ("APP_URL", "http://localhost:5000"),
    ("STORAGE_BACKEND", "local"),
    ("S3_ENDPOINT", ""),
    ("S3_REGION", "nyc3"),
    ("S3_BUCKET", ""),
    ("S3_ACCESS_KEY_ID", ""),
    ("S3_SECRET_ACCESS_KEY", ""),
    ("OPENAI_API_KEY", ""),
    ("OPENAI_TEXT_MODEL", "gpt-4-turbo-preview"),
    ("OPENAI_IMAGE_MODEL", "dall-e-3"),
    ("APPLICATIONS_DISCORD_WEBHOOK_URL", ""),
    ("CONTACT_DISCORD_WEBHOOK_URL", ""),
)

_INT_SETTINGS: tuple[tuple[str, int], ...] = (
    # Bearer token lifetime; one week.
    ("TOKEN_TTL_HOURS", 168),
)

# Chat and AI uploads are capped at 5MB per route; this bounds the whole multipart body.
MAX_REQUEST_BYTES = 8 * 1024 * 1024


def env_str(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name) or default)
    except ValueError:
        return default


def load_config() -> dict:
    config: dict = {key: env_str(key, default) for key, default in _STRING_SETTINGS}
    config.update({key: env_int(key, default) for key, default in _INT_SETTINGS})
    config["APP_URL"] = config["APP_URL"].rstrip("/")
    config["MAX_CONTENT_LENGTH"] = MAX_REQUEST_BYTES
    return config
