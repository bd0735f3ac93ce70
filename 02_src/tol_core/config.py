"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "tree_of_life.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def history_limit() -> int:
    """Capacity of the broadcaster's recent-history buffer."""
    return _env_int("EVENT_HISTORY_LIMIT", 1000)


def recent_on_connect() -> int:
    """How many recent events a new real-time connection receives."""
    return _env_int("RECENT_ON_CONNECT", 10)


def ws_queue_size() -> int:
    """Per-connection outbound queue bound."""
    return _env_int("WS_QUEUE_SIZE", 100)


def cors_origins() -> list[str]:
    """Allowed CORS origins from CORS_ORIGINS (comma separated)."""
    raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
