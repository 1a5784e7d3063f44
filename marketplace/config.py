import os


def _flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name) or default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("MARKETPLACE_DB")
if not DATABASE_URL:
    raise RuntimeError("MARKETPLACE_DB environment variable is not set")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM") or "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS") or "30")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS") or "12")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

RABBIT_URL = os.getenv("RABBIT_URL")  # optional, events are skipped without it
REDIS_URL = os.getenv("REDIS_URL")  # optional, rate limiting is skipped without it
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE") or "120")

CLEANUP_SECRET = os.getenv("CLEANUP_SECRET")

CORS_ORIGINS = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]

LOG_JSON = _flag("LOG_JSON")
SQL_ECHO = _flag("SQL_ECHO")
