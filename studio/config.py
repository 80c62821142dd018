import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Class attributes below read the environment at import time.
load_dotenv(BASE_DIR / ".env")


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'story_studio.db'}"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared across environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_TIME_LIMIT = None

    AUTOSAVE_DEBOUNCE_SECONDS = float(os.environ.get("AUTOSAVE_DEBOUNCE_SECONDS", "1.5"))
    SAVED_STATUS_SECONDS = float(os.environ.get("SAVED_STATUS_SECONDS", "2.0"))
    SEED_ON_STARTUP = _env_flag("SEED_ON_STARTUP", True)

    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    AI_TEXT_MODEL = os.environ.get("AI_TEXT_MODEL", "gpt-4o-mini")
    AI_QUALITY_MODEL = os.environ.get("AI_QUALITY_MODEL", "gpt-4o")
    AI_REASONING_MODEL = os.environ.get("AI_REASONING_MODEL", "o4-mini")
    AI_IMAGE_MODEL = os.environ.get("AI_IMAGE_MODEL", "gpt-image-1")
    AI_SPEECH_MODEL = os.environ.get("AI_SPEECH_MODEL", "gpt-4o-mini-tts")
    AI_SPEECH_VOICE = os.environ.get("AI_SPEECH_VOICE", "alloy")
    AI_LIVE_MODEL = os.environ.get("AI_LIVE_MODEL", "gpt-4o-realtime-preview")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SEED_ON_STARTUP = False
    OPENAI_API_KEY = ""
    LOG_FILE = None
