# main.py
# Entry point: settings -> IMAP search -> classify each message -> move to Spam/Archive
from __future__ import annotations
import signal
import sys
import threading
from typing import Sequence

from config.settings import Settings
from domain.errors import ConfigError, TriageError
from interface_adapters.controllers.triage_controller import TriageController
from utils.logging_setup import component_logger, configure_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def handler(signum, _frame) -> None:
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, handler)


def main(argv: Sequence[str] | None = None) -> int:
    logger = component_logger("main")
    try:
        settings = Settings.from_args(argv)
        configure_logging(settings.LOG_LEVEL)
        settings.validate()
    except ConfigError as exc:
        configure_logging()
        logger.error("invalid options", extra={"error": str(exc), "problems": len(exc.problems)})
        return EXIT_CONFIG

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    logger.info("=== Mail triage ===", extra={"host": settings.IMAP_HOST, "mailbox": settings.IMAP_FOLDER_INBOX})
    try:
        result = TriageController(settings).run_once(stop_event=stop_event)
    except TriageError as exc:
        logger.error("failed to process emails", extra={"error": str(exc), "error_type": type(exc).__name__})
        return EXIT_FAILURE
    except Exception as exc:
        logger.exception("failed to process emails", extra={"error": str(exc), "error_type": type(exc).__name__})
        return EXIT_FAILURE
    return EXIT_FAILURE if result.cancelled else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
