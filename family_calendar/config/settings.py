from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    load_dotenv(BASE_DIR / "family_calendar" / "config" / "env.example")


DEFAULT_TIMEZONE = "Asia/Jerusalem"
DEFAULT_CALENDAR_ID = "primary"
DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    gemini_api_key: str
    gemini_model: str
    gemini_vision_model: str
    database_url: str
    google_client_id: str = ""
    google_client_secret: str = ""
    google_project_id: str = ""
    google_oauth_port: int = 8080
    timezone: str = DEFAULT_TIMEZONE
    calendar_id: str = DEFAULT_CALENDAR_ID
    media_dir: str = "media"
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    request_timeout: float = 30.0
    host: str = "0.0.0.0"
    port: int = 8000


def get_settings() -> Settings:
    import os

    gemini_model = os.getenv("GEMINI_MODEL", "models/gemini-2.5-flash")
    return Settings(
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=gemini_model,
        gemini_vision_model=os.getenv("GEMINI_VISION_MODEL", "") or gemini_model,
        database_url=os.getenv("DATABASE_URL", "sqlite:///family_calendar.db"),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        google_project_id=os.getenv("GOOGLE_PROJECT_ID", ""),
        google_oauth_port=int(os.getenv("GOOGLE_OAUTH_PORT", "8080")),
        timezone=os.getenv("TIMEZONE", "") or DEFAULT_TIMEZONE,
        calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "") or DEFAULT_CALENDAR_ID,
        media_dir=os.getenv("MEDIA_DIR", "media"),
        max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", str(DEFAULT_MAX_IMAGE_BYTES))),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
