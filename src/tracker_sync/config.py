# src/tracker_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Backend credentials are only checked when that backend is wired up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "TRACKER"

BACKENDS = ("local", "sheets", "supabase")

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v.strip()


def _env_opt(name: str) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


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

    # ---- Backend selection ----
    backend: str

    # ---- Spreadsheet backend ----
    sheets_spreadsheet_id: Optional[str]
    sheets_api_key: Optional[str]
    sheets_access_token: Optional[str]
    sheets_sheet_title: Optional[str]
    sheets_has_header: bool
    sheets_base_url: str

    # ---- Relational backend (Supabase / PostgREST) ----
    supabase_url: Optional[str]
    supabase_anon_key: Optional[str]
    supabase_access_token: Optional[str]
    supabase_table: str

    # ---- Local SQLite backend ----
    local_db_path: Path
    local_user_id: Optional[str]

    # ---- Sync tuning ----
    refresh_interval_seconds: float
    fetch_timeout_seconds: float
    http_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tracker") or "tracker"
        log_level = _env(_k("LOG_LEVEL"), "INFO") or "INFO"
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tracker"))

        backend = (_env(_k("BACKEND"), "local") or "local").lower()
        if backend not in BACKENDS:
            backend = "local"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            sheets_spreadsheet_id=_env_opt(_k("SHEETS_SPREADSHEET_ID")),
            sheets_api_key=_env_opt(_k("SHEETS_API_KEY")),
            sheets_access_token=_env_opt(_k("SHEETS_ACCESS_TOKEN")),
            sheets_sheet_title=_env_opt(_k("SHEETS_SHEET_TITLE")),
            sheets_has_header=_env_bool(_k("SHEETS_HAS_HEADER"), True),
            sheets_base_url=_env(_k("SHEETS_BASE_URL"), "https://sheets.googleapis.com"),
            supabase_url=_env_opt(_k("SUPABASE_URL")),
            supabase_anon_key=_env_opt(_k("SUPABASE_ANON_KEY")),
            supabase_access_token=_env_opt(_k("SUPABASE_ACCESS_TOKEN")),
            supabase_table=_env(_k("SUPABASE_TABLE"), "tasks") or "tasks",
            local_db_path=_env_path(_k("LOCAL_DB_PATH"), data_dir / "tasks.sqlite3"),
            local_user_id=_env_opt(_k("LOCAL_USER_ID")),
            refresh_interval_seconds=_env_float(_k("REFRESH_INTERVAL_SECONDS"), 30.0),
            fetch_timeout_seconds=_env_float(_k("FETCH_TIMEOUT_SECONDS"), 15.0),
            http_timeout_seconds=_env_float(_k("HTTP_TIMEOUT_SECONDS"), 20.0),
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env for secrets; use config_local.py only for safe overrides.
try:
    import config_local as _config_local  # type: ignore

    # Simple overrides for selected names. Keep it explicit.
    if hasattr(_config_local, "BACKEND") and str(_config_local.BACKEND).lower() in BACKENDS:
        object.__setattr__(SETTINGS, "backend", str(_config_local.BACKEND).lower())  # type: ignore[misc]
    if hasattr(_config_local, "REFRESH_INTERVAL_SECONDS"):
        object.__setattr__(  # type: ignore[misc]
            SETTINGS, "refresh_interval_seconds", float(_config_local.REFRESH_INTERVAL_SECONDS)
        )
except ImportError:
    pass


def get_settings() -> Settings:
    return SETTINGS
