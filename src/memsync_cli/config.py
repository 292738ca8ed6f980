"""Configuration, DB path and session resolution for memsync-cli."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigError


DATA_DIR_NAME = ".memsync"
DB_FILE_NAME = "memory.db"
SESSION_FILE_NAME = "session.json"


def get_global_db_path() -> Path:
    """Get the global database path (~/.memsync/memory.db)."""
    return Path.home() / DATA_DIR_NAME / DB_FILE_NAME


def get_local_db_path() -> Path:
    """Get the local database path (CWD/.memsync/memory.db)."""
    return Path.cwd() / DATA_DIR_NAME / DB_FILE_NAME


def has_local_db() -> bool:
    """Check if a local .memsync/ directory exists in CWD."""
    return (Path.cwd() / DATA_DIR_NAME).exists()


def get_db_path(override: str | None = None, use_global: bool = False) -> Path:
    """Resolve database path.

    Priority:
    1. --db PATH explicit override (highest)
    2. MEMSYNC_DB env var
    3. --global flag → force global ~/.memsync/
    4. .memsync/ exists in CWD → use local
    5. fallback → global ~/.memsync/

    Args:
        override: Explicit path passed via --db flag
        use_global: If True, skip local detection and use global

    Returns:
        Path to the SQLite database file
    """
    if override:
        return Path(override).expanduser().resolve()

    env_path = os.environ.get("MEMSYNC_DB")
    if env_path:
        return Path(env_path).expanduser().resolve()

    if use_global:
        return get_global_db_path()

    if has_local_db():
        return get_local_db_path()

    return get_global_db_path()


def ensure_db_dir(db_path: Path) -> None:
    """Ensure the parent directory for the database exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def get_session_path(db_path: Path) -> Path:
    """The session file lives next to the database it belongs to."""
    return db_path.parent / SESSION_FILE_NAME


def load_actor(db_path: Path) -> Optional[str]:
    """Read the persisted actor id, or None when nobody is logged in."""
    path = get_session_path(db_path)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return None
    actor = data.get("actor") if isinstance(data, dict) else None
    return actor or None


def save_actor(db_path: Path, actor: Optional[str]) -> None:
    """Persist the actor id for later invocations. None logs out."""
    path = get_session_path(db_path)
    ensure_db_dir(path)
    path.write_text(json.dumps({"actor": actor}))


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    access_token: Optional[str] = None
    remote_timeout: float = 10.0
    pull_interval: float = 30.0
    max_workers: int = 4
    max_pending: int = 64
    log_level: str = "WARNING"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings() -> Settings:
    """Build Settings from MEMSYNC_* environment variables.

    Raises:
        ConfigError: If a numeric variable is malformed or not positive
    """
    return Settings(
        supabase_url=os.environ.get("MEMSYNC_SUPABASE_URL") or None,
        supabase_key=os.environ.get("MEMSYNC_SUPABASE_KEY") or None,
        access_token=os.environ.get("MEMSYNC_ACCESS_TOKEN") or None,
        remote_timeout=_env_number("MEMSYNC_REMOTE_TIMEOUT", 10.0),
        pull_interval=_env_number("MEMSYNC_PULL_INTERVAL", 30.0),
        max_workers=int(_env_number("MEMSYNC_MAX_WORKERS", 4, int)),
        max_pending=int(_env_number("MEMSYNC_MAX_PENDING", 64, int)),
        log_level=os.environ.get("MEMSYNC_LOG_LEVEL", "WARNING"),
    )
