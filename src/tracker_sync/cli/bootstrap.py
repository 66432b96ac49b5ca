# src/tracker_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the configured backend (sheets / supabase / local) into a TrackerSession,
- starts the background event loop and the periodic refresher.
"""

from __future__ import annotations

import logging

import httpx

from ..config import get_settings
from ..core.notifier import LoggingNotifier
from ..core.ports import Notifier
from ..core.runner import start_background_loop
from ..core.state import AppState
from ..tasks.mutations import RecordMutations, SheetMutations
from ..tasks.record_source import LocalRecordBackend, PostgrestBackend, RecordTaskSource
from ..tasks.sheet_source import SheetsClient, SheetTaskSource
from ..tasks.task_api import TrackerSession
from ..tasks.task_cache import TaskCache
from ..tasks.task_refresher import RefreshPolicy, start_refresher
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_session(
    settings,
    *,
    notifier: Notifier | None = None,
    http: httpx.AsyncClient | None = None,
) -> TrackerSession:
    """
    Wire source + mutations + cache for settings.backend.

    Remote backends need `http`; the local backend ignores it.
    Raises ValueError when the selected backend is missing required settings.
    """
    cache = TaskCache(fetch_timeout_seconds=settings.fetch_timeout_seconds)
    backend = settings.backend

    if backend == "sheets":
        if http is None:
            raise ValueError("The sheets backend needs an HTTP client")
        if not settings.sheets_spreadsheet_id:
            raise ValueError("TRACKER_SHEETS_SPREADSHEET_ID is required for the sheets backend")
        client = SheetsClient(
            http,
            spreadsheet_id=settings.sheets_spreadsheet_id,
            api_key=settings.sheets_api_key,
            access_token=settings.sheets_access_token,
            sheet_title=settings.sheets_sheet_title,
            base_url=settings.sheets_base_url,
        )
        sheet_source = SheetTaskSource(client, has_header=settings.sheets_has_header)
        return TrackerSession(
            backend_name=backend,
            source=sheet_source,
            mutations=SheetMutations(sheet_source, cache=cache, notifier=notifier),
            cache=cache,
        )

    if backend == "supabase":
        if http is None:
            raise ValueError("The supabase backend needs an HTTP client")
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ValueError("TRACKER_SUPABASE_URL and TRACKER_SUPABASE_ANON_KEY are required for the supabase backend")
        remote = PostgrestBackend(
            http,
            base_url=settings.supabase_url,
            api_key=settings.supabase_anon_key,
            access_token=settings.supabase_access_token,
            table=settings.supabase_table,
        )
        return TrackerSession(
            backend_name=backend,
            source=RecordTaskSource(remote),
            mutations=RecordMutations(remote, cache=cache, notifier=notifier),
            cache=cache,
        )

    local = LocalRecordBackend(TaskStore(settings.local_db_path), user_id=settings.local_user_id)
    return TrackerSession(
        backend_name="local",
        source=RecordTaskSource(local),
        mutations=RecordMutations(local, cache=cache, notifier=notifier),
        cache=cache,
    )


def create_initial_state(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings and start the background loop.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    runner = start_background_loop()
    if runner is None:
        raise RuntimeError("Could not start the background event loop")

    http: httpx.AsyncClient | None = None
    if settings.backend in ("sheets", "supabase"):
        http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    try:
        session = build_session(settings, notifier=notifier or LoggingNotifier(), http=http)
    except Exception:
        if http is not None:
            runner.run(http.aclose(), timeout=5.0)
        runner.stop()
        raise
    state = AppState(settings=settings, session=session, runner=runner, http=http)

    # First read kicks off the initial fetch; the refresher keeps "all tasks" fresh afterwards.
    runner.call(session.snapshot)
    policy = RefreshPolicy.from_seconds(settings.refresh_interval_seconds)
    state.refresher = runner.call(start_refresher, session.cache, policy, key=session.key)

    logger.info("Tracker ready backend=%s refresh=%s", session.backend_name, policy.interval_seconds)
    return state


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    runner = state.runner
    if runner is None:
        return

    if state.http is not None:
        try:
            runner.run(state.http.aclose(), timeout=5.0)
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)

    runner.stop()
    runner.join(timeout=10.0)
