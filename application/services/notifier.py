# application/services/notifier.py
from __future__ import annotations
import logging
from typing import Protocol

from utils.logging_setup import component_logger


class Notifier(Protocol):
    def notify(self, message: str, **context) -> None: ...


class LogNotifier:
    """Priority notifications go to the log as warnings; nothing is delivered elsewhere."""

    def __init__(self, logger: logging.LoggerAdapter | None = None) -> None:
        self.logger = logger or component_logger("notifier")

    def notify(self, message: str, **context) -> None:
        self.logger.warning(message, extra=context)
