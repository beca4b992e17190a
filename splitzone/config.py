import os
from dotenv import load_dotenv

load_dotenv()


def _split_origins(raw: str):
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins or origins == ["*"]:
        return "*"
    return origins


class Config:
    # Frontend origins allowed to call /api/*
    CORS_ORIGINS = _split_origins(os.environ.get("CORS_ORIGINS", "*"))

    # Currency used when a request does not name one
    DEFAULT_CURRENCY = os.environ.get("SPLITZONE_DEFAULT_CURRENCY", "USD").strip().upper()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

config = Config()
