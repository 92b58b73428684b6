import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str
    max_content_length: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from None


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///docvault.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        # Markdown bodies travel as JSON; 2MB is plenty for a single document.
        max_content_length=_getenv_int("MAX_CONTENT_LENGTH", 2 * 1024 * 1024),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "MAX_CONTENT_LENGTH": s.max_content_length,
    }


def production_config_errors(config: Mapping[str, Any]) -> list[str]:
    """Settings that are fine for local work but unsafe once ENV is production."""
    if str(config.get("ENV") or "").lower() not in ("prod", "production"):
        return []
    errors = []
    db_url = str(config.get("DATABASE_URL") or "")
    if not db_url:
        errors.append("DATABASE_URL is required.")
    elif db_url.startswith("sqlite"):
        errors.append("DATABASE_URL must point at Postgres, not SQLite.")
    if str(config.get("SECRET_KEY") or "") in ("", "change-me"):
        errors.append("SECRET_KEY must be set to a non-default value.")
    return errors
