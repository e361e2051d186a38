"""Settings management for environment-driven configuration."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Runtime configuration loaded from environment variables."""

    db_path: str
    log_dir: str
    environment: str = "dev"
    debug_mode: bool = False
    filename_retry_attempts: int = 5
    filename_retry_delay_seconds: float = 0.5
    referrer_tab_fallback: bool = True


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    """Convert common truthy/falsy strings to boolean values."""

    if value is None:
        return default
    normalized = value.strip().lower()
    return normalized in {"1", "true", "yes", "on"}


def _get_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _get_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def load_settings() -> Settings:
    """Load settings from environment variables."""

    base_dir = Path(os.getenv("APP_BASE_DIR", Path.cwd()))

    db_path = Path(os.getenv("DB_PATH", base_dir / "renamer.sqlite3"))
    log_dir = Path(os.getenv("LOG_DIR", base_dir / "logs"))

    db_path.parent.mkdir(parents=True, exist_ok=True)

    return Settings(
        db_path=str(db_path),
        log_dir=str(log_dir),
        environment=os.environ.get("ENVIRONMENT", "dev"),
        debug_mode=_get_bool(os.environ.get("DEBUG_MODE"), False),
        filename_retry_attempts=max(
            _get_int(os.environ.get("FILENAME_RETRY_ATTEMPTS"), 5), 1
        ),
        filename_retry_delay_seconds=max(
            _get_float(os.environ.get("FILENAME_RETRY_DELAY_SECONDS"), 0.5), 0.0
        ),
        referrer_tab_fallback=_get_bool(
            os.environ.get("REFERRER_TAB_FALLBACK"), True
        ),
    )
