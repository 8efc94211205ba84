from __future__ import annotations

import os
from dataclasses import dataclass, field, fields


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env(name: str, default: str = ""):
    return field(default_factory=lambda: os.getenv(name, default))


@dataclass
class Settings:
    app_env: str = _env("APP_ENV", "production")
    tz: str = _env("TZ", "UTC")

    api_base_url: str = _env("API_BASE_URL", "http://localhost:5000/api")
    # Uploaded receipt files are served from the server root, outside /api
    server_base_url: str = _env("SERVER_BASE_URL", "http://localhost:5000")
    api_token: str = _env("API_TOKEN")
    api_actor: str = _env("API_ACTOR", "admin")

    http_timeout_seconds: float = field(default_factory=lambda: _float_env("HTTP_TIMEOUT_SECONDS", 30.0))
    receipts_page_size: int = field(default_factory=lambda: _int_env("RECEIPTS_PAGE_SIZE", 20))


settings = Settings()


def refresh_settings() -> Settings:
    """Re-read the environment into the shared ``settings`` object (after load_dotenv)."""
    fresh = Settings()
    for f in fields(Settings):
        setattr(settings, f.name, getattr(fresh, f.name))
    return settings
