# src/tracker_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (background loop + backend session),
then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import ConsoleNotifier, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (backend=%s, log=%s)...", settings.app_name, settings.backend, log_file)

    try:
        state = create_initial_state(settings=settings, notifier=ConsoleNotifier())
    except (ValueError, RuntimeError) as e:
        logger.error("Startup failed: %s", e)
        sys.exit(2)

    try:
        run_console_loop(state)
    finally:
        shutdown_state(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
