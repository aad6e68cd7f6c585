# utils/logging_setup.py

from __future__ import annotations
import logging
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(component)s: %(message)s"

# Standard LogRecord attributes; anything else came in through extra=
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "component"}


class StructuredFormatter(logging.Formatter):
    """
    Renders the fields passed through ``extra=`` as ``key=value`` after the message:

        2026-10-18 09:00:00 [ERROR] controller: run failed error='login refused' host=imap.example.test
    """

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str | None = None) -> None:
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "component"):
            record.component = record.name
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if fields:
            line += " " + " ".join(f"{k}={_render(v)}" for k, v in sorted(fields.items()))
        return line


def _render(value: Any) -> str:
    if isinstance(value, str):
        return repr(value) if (not value or " " in value) else value
    return str(value)


class ComponentLogger(logging.LoggerAdapter):
    """LoggerAdapter that stamps every record with its component and merges call-site extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **fields: Any) -> "ComponentLogger":
        return ComponentLogger(self.logger, {**self.extra, **fields})


def component_logger(component: str, **fields: Any) -> ComponentLogger:
    return ComponentLogger(logging.getLogger(f"mail_triage.{component}"), {"component": component, **fields})


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), handlers=[handler], force=True)
