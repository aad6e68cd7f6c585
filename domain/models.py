# domain/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime

JUNK_CATEGORY = "junk"


@dataclass(frozen=True)
class SearchFilter:
    unread: bool = False
    since: date | None = None


@dataclass
class MailItem:
    uid: int
    subject: str
    senders: list[str]
    date: datetime | None
    body: str = ""
    # set when the raw message could not be parsed; the processor reports it for this uid only
    parse_error: Exception | None = None


@dataclass
class MailDecision:
    uid: int
    subject: str
    category: str
    folder: str
    notified: bool = False
    moved: bool = False


@dataclass
class BatchResult:
    decisions: list[MailDecision] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.decisions) + len(self.errors)
