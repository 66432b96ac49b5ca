# src/tracker_sync/core/notifier.py

from __future__ import annotations

import logging

from .ports import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Default notifier when no UI is attached: outcomes go to the log."""

    def success(self, message: str) -> None:
        logger.info("OK: %s", message)

    def failure(self, message: str) -> None:
        logger.warning("FAILED: %s", message)


def safe_notify(notifier: Notifier | None, ok: bool, message: str) -> None:
    """Deliver one outcome signal. A broken notifier never changes the mutation result."""
    if notifier is None:
        return
    try:
        if ok:
            notifier.success(message)
        else:
            notifier.failure(message)
    except Exception:
        logger.exception("Notifier failed (ok=%s message=%r)", ok, message)
