import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")
DB_ECHO = _env_bool("DB_ECHO")
# Transaction-mode poolers (pgbouncer, supabase) need NullPool + no statement cache
DB_USE_NULLPOOL = _env_bool("DB_USE_NULLPOOL")

ANALYSIS_TABLE = os.getenv("ANALYSIS_TABLE", "analysis_results")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

REFRESH_INTERVAL_SECONDS = float(os.getenv("REFRESH_INTERVAL_SECONDS", "60"))

CLOSED_PAGE_LIMIT = int(os.getenv("CLOSED_PAGE_LIMIT", "10"))
OPEN_PAGE_LIMIT = int(os.getenv("OPEN_PAGE_LIMIT", "100"))
ANALYSIS_PAGE_LIMIT = int(os.getenv("ANALYSIS_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "1000"))

APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
