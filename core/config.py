"""Application settings read from the environment.

Values are resolved once at import time. Every setting has a development
default so the service and the test-suite start without a `.env` file.
"""

import os


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


APP_ENV = os.getenv("APP_ENV", "development")
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:3000")

# Read/Write partitioning, same file for local development
WRITE_DATABASE_URL = os.getenv("WRITE_DATABASE_URL", "sqlite:///fitcoach.db")
READ_DATABASE_URL = os.getenv("READ_DATABASE_URL", WRITE_DATABASE_URL)

# LLM provider (OpenRouter-compatible chat completions)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "qwen/qwen3-coder:free")
OPENROUTER_TIMEOUT = float(os.getenv("OPENROUTER_TIMEOUT", "60"))
OPENROUTER_MAX_RETRIES = int(os.getenv("OPENROUTER_MAX_RETRIES", "0"))
OPENROUTER_APP_URL = os.getenv("APP_URL", "http://localhost:3000")
OPENROUTER_APP_TITLE = os.getenv("APP_TITLE", "FitCoach")

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_MINUTES = int(os.getenv("JWT_EXPIRATION_MINUTES", "15"))
CRON_SECRET = os.getenv("CRON_SECRET")

# Scheduler wall-clock triggers, server local time (HH:MM)
SCHEDULER_ENABLED = _bool("SCHEDULER_ENABLED", True)
SUBSCRIPTION_UPDATE_TIME = os.getenv("SUBSCRIPTION_UPDATE_TIME", "01:00")
DAILY_DIET_TIME = os.getenv("DAILY_DIET_TIME", "02:00")
WORKOUT_EXPIRY_TIME = os.getenv("WORKOUT_EXPIRY_TIME", "03:00")

# Rate limiting
PLAN_GENERATION_MAX_REQUESTS = int(os.getenv("PLAN_GENERATION_MAX_REQUESTS", "2"))
PLAN_GENERATION_WINDOW_SECONDS = int(os.getenv("PLAN_GENERATION_WINDOW_SECONDS", "120"))
AI_OPERATION_MAX_REQUESTS = int(os.getenv("AI_OPERATION_MAX_REQUESTS", "5"))
AI_OPERATION_WINDOW_SECONDS = int(os.getenv("AI_OPERATION_WINDOW_SECONDS", "600"))

LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.path.dirname(__file__), "..", "logs"))


def is_production() -> bool:
    return APP_ENV == "production"
