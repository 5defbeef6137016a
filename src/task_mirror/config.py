# src/task_mirror/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are built lazily and can always be injected instead (tests, embedding).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKMIRROR"

BACKEND_SQLITE = "sqlite"
BACKEND_FIRESTORE = "firestore"
BACKENDS = (BACKEND_SQLITE, BACKEND_FIRESTORE)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Sync ----
    backend: str
    group_code: str
    poll_interval_seconds: float
    strict_writes: bool

    # ---- SQLite backend ----
    db_path: Path

    # ---- Firestore backend ----
    firestore_project_id: str
    firestore_database: str
    firestore_collection: str
    firestore_base_url: str
    firestore_token: str | None
    http_timeout_seconds: float

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> Settings:
        if load_env_file:
            load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "task-mirror") or "task-mirror"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/task_mirror"))

        backend = _env(_k("BACKEND"), BACKEND_SQLITE).strip().lower() or BACKEND_SQLITE
        if backend not in BACKENDS:
            raise ValueError(f"{_k('BACKEND')} must be one of {', '.join(BACKENDS)}, got {backend!r}")

        group_code = _env(_k("GROUP_CODE"), "").strip()
        poll_interval_seconds = max(0.1, _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0))
        strict_writes = _env_bool(_k("STRICT_WRITES"), False)

        db_path = _env_path(_k("DB_PATH"), data_dir / "tasks.sqlite3")

        firestore_project_id = _env(_k("FIRESTORE_PROJECT_ID"), "").strip()
        firestore_database = _env(_k("FIRESTORE_DATABASE"), "(default)").strip() or "(default)"
        firestore_collection = _env(_k("FIRESTORE_COLLECTION"), "tasks").strip() or "tasks"
        firestore_base_url = _env(_k("FIRESTORE_BASE_URL"), "https://firestore.googleapis.com/v1").strip()
        firestore_token = _env(_k("FIRESTORE_TOKEN"), "").strip() or None
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            group_code=group_code,
            poll_interval_seconds=poll_interval_seconds,
            strict_writes=strict_writes,
            db_path=db_path,
            firestore_project_id=firestore_project_id,
            firestore_database=firestore_database,
            firestore_collection=firestore_collection,
            firestore_base_url=firestore_base_url,
            firestore_token=firestore_token,
            http_timeout_seconds=http_timeout_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
