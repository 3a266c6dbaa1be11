import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    default_page_size: int
    max_page_size: int

    default_cgst_rate: str
    default_sgst_rate: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///cwms.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        default_page_size=_getenv_int("DEFAULT_PAGE_SIZE", 20),
        max_page_size=_getenv_int("MAX_PAGE_SIZE", 100),
        default_cgst_rate=_getenv("DEFAULT_CGST_RATE", "9"),
        default_sgst_rate=_getenv("DEFAULT_SGST_RATE", "9"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "DEFAULT_PAGE_SIZE": max(1, s.default_page_size),
        "MAX_PAGE_SIZE": max(1, s.max_page_size),
        "DEFAULT_CGST_RATE": s.default_cgst_rate,
        "DEFAULT_SGST_RATE": s.default_sgst_rate,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # request body limit (10MB)
        "MAX_CONTENT_LENGTH": 10 * 1024 * 1024,
    }
