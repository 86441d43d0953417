import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "chatwave")

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = "HS256"
ACCESS_TOKEN_MAX_AGE_SECONDS = _int_env("ACCESS_TOKEN_MAX_AGE_SECONDS", 3 * 24 * 60 * 60)
AUTH_COOKIE_NAME = "jwt"

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

PRESENCE_SWEEP_SECONDS = _int_env("PRESENCE_SWEEP_SECONDS", 60)
HEARTBEAT_SECONDS = _int_env("HEARTBEAT_SECONDS", 30)
MESSAGE_EDIT_WINDOW_MINUTES = _int_env("MESSAGE_EDIT_WINDOW_MINUTES", 15)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = _int_env("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
