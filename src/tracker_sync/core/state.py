# src/tracker_sync/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx

from ..tasks.task_api import TrackerSession
from ..tasks.views import ALL
from .runner import BackgroundLoop


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    session: TrackerSession
    runner: BackgroundLoop | None = None
    http: httpx.AsyncClient | None = None
    refresher: asyncio.Task[None] | None = None

    # Current list controls (what /list shows).
    category: str = ALL
    ascending: bool | None = None
