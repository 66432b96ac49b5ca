# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TRACKER_APP_NAME": "App display name (default: tracker).",
    "TRACKER_LOG_LEVEL": "Console logging level (default: INFO).",
    "TRACKER_DATA_DIR": "Local data dir for logs and the SQLite db (default: .local/tracker).",
    # Backend
    "TRACKER_BACKEND": "local | sheets | supabase (default: local).",
    # Spreadsheet backend
    "TRACKER_SHEETS_SPREADSHEET_ID": "Spreadsheet id (required for the sheets backend).",
    "TRACKER_SHEETS_API_KEY": "API key (reads of a shared sheet).",
    "TRACKER_SHEETS_ACCESS_TOKEN": "OAuth access token (needed for writes).",
    "TRACKER_SHEETS_SHEET_TITLE": "Sheet (tab) title; empty means the first sheet.",
    "TRACKER_SHEETS_HAS_HEADER": "First row is a header (default: true).",
    "TRACKER_SHEETS_BASE_URL": "API base URL (default: https://sheets.googleapis.com).",
    # Relational backend
    "TRACKER_SUPABASE_URL": "Project URL, e.g. https://xyz.supabase.co.",
    "TRACKER_SUPABASE_ANON_KEY": "Anon (public) API key.",
    "TRACKER_SUPABASE_ACCESS_TOKEN": "Signed-in user's access token (required to create tasks).",
    "TRACKER_SUPABASE_TABLE": "Table name (default: tasks).",
    # Local backend
    "TRACKER_LOCAL_DB_PATH": "SQLite file (default: <data_dir>/tasks.sqlite3).",
    "TRACKER_LOCAL_USER_ID": "Principal used for creates; empty means signed out.",
    # Sync tuning
    "TRACKER_REFRESH_INTERVAL_SECONDS": "Auto-refresh interval (default: 30, 0 disables).",
    "TRACKER_FETCH_TIMEOUT_SECONDS": "Deadline for one fetch (default: 15).",
    "TRACKER_HTTP_TIMEOUT_SECONDS": "HTTP client timeout (default: 20).",
}
