# config/settings.py
from __future__ import annotations
import argparse
import os
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Mapping, Sequence
from dotenv import load_dotenv

from domain.errors import ConfigError
from domain.models import SearchFilter

load_dotenv()

SINCE_FORMAT = "%Y-%m-%d"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: str | bool) -> bool:
    if isinstance(raw, bool):
        return raw
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {raw!r}")


def _split_csv(raw: str, *, lower: bool = False) -> list[str]:
    items = [s.strip() for s in (raw or "").split(",") if s.strip()]
    return [s.lower() for s in items] if lower else items


_CONVERTERS = {bool: _parse_bool, int: int, float: float, str: str}


@dataclass(frozen=True)
class Settings:
    # IMAP
    IMAP_HOST: str = ""
    IMAP_PORT: int = 993
    IMAP_USERNAME: str = ""
    IMAP_PASSWORD: str = ""
    IMAP_SSL: bool = True
    IMAP_FOLDER_INBOX: str = "INBOX"
    IMAP_FOLDER_SPAM: str = "Spam"
    IMAP_FOLDER_ARCHIVE: str = "Archive"
    IMAP_CREATE_FOLDERS: bool = True

    # Search filter
    UNREAD_ONLY: bool = False
    TODAY: bool = False
    SINCE: str = ""

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT: float = 30.0

    # Routing rules
    PRIORITY_SENDERS: str = "important@company.com"
    PRIORITY_KEYWORDS: str = "urgent,immediate action"

    # Run
    MAX_MAILS_PER_RUN: int = 10
    DRY_RUN: bool = False
    LOG_LEVEL: str = "INFO"

    # ───────── loading ─────────
    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Every field is read from the variable of the same name, converted like its default."""
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            if f.name not in env:
                continue
            convert = _CONVERTERS.get(type(f.default), str)
            try:
                values[f.name] = convert(env[f.name])
            except (ValueError, argparse.ArgumentTypeError) as exc:
                raise ConfigError([f"invalid environment value for {f.name}: {exc}"]) from exc
        if "LOG_LEVEL" in values:
            values["LOG_LEVEL"] = values["LOG_LEVEL"].upper()
        return cls(**values)

    @classmethod
    def from_args(
        cls,
        argv: Sequence[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """
        Environment (and .env) first, CLI flags on top. Only flags that were
        actually given override the environment.
        """
        defaults = cls.from_env(environ)
        args = build_parser(defaults).parse_args(argv)

        overrides = {
            "IMAP_USERNAME": args.username,
            "IMAP_PASSWORD": args.password,
            "IMAP_HOST": args.imap_server,
            "IMAP_PORT": args.port,
            "IMAP_SSL": args.use_tls,
            "IMAP_FOLDER_INBOX": args.mailbox,
            "IMAP_FOLDER_SPAM": args.spam_folder,
            "IMAP_FOLDER_ARCHIVE": args.archive_folder,
            "UNREAD_ONLY": args.unread or defaults.UNREAD_ONLY,
            "TODAY": args.today or defaults.TODAY,
            "SINCE": args.since,
            "OPENAI_API_KEY": args.api_key,
            "OPENAI_MODEL": args.model,
            "DRY_RUN": args.dry_run or defaults.DRY_RUN,
            "LOG_LEVEL": args.log_level.upper(),
        }
        if args.no_create_folders:
            overrides["IMAP_CREATE_FOLDERS"] = False
        if args.priority_sender:
            overrides["PRIORITY_SENDERS"] = ",".join(args.priority_sender)
        if args.priority_keyword:
            overrides["PRIORITY_KEYWORDS"] = ",".join(args.priority_keyword)
        return replace(defaults, **overrides)

    # ───────── validation ─────────
    def validate(self) -> None:
        problems: list[str] = []
        if not self.IMAP_USERNAME:
            problems.append("username is required")
        if not self.IMAP_PASSWORD:
            problems.append("password is required")
        if not self.IMAP_HOST:
            problems.append("IMAP server is required")
        if not self.OPENAI_API_KEY:
            problems.append("OpenAI API key is required")
        if self.MAX_MAILS_PER_RUN < 1:
            problems.append(f"MAX_MAILS_PER_RUN must be positive, got {self.MAX_MAILS_PER_RUN}")
        if self.SINCE:
            try:
                self.since_date()
            except ValueError:
                problems.append(f"invalid date format for 'since' ({self.SINCE!r}), expected YYYY-MM-DD")
        if problems:
            raise ConfigError(problems)

    # ───────── helpers ─────────
    def since_date(self) -> date | None:
        if not self.SINCE:
            return None
        return datetime.strptime(self.SINCE.strip(), SINCE_FORMAT).date()

    def search_filter(self, today: date | None = None) -> SearchFilter:
        """
        --since wins over --today when both are given.
        """
        since: date | None = None
        if self.TODAY:
            since = today or date.today()
        if self.SINCE:
            try:
                since = self.since_date()
            except ValueError as exc:
                raise ConfigError([f"invalid date format for 'since' ({self.SINCE!r}): {exc}"]) from exc
        return SearchFilter(unread=self.UNREAD_ONLY, since=since)

    def priority_senders(self) -> list[str]:
        return _split_csv(self.PRIORITY_SENDERS)

    def priority_keywords(self) -> list[str]:
        return _split_csv(self.PRIORITY_KEYWORDS, lower=True)


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Classify IMAP messages with an OpenAI model and route them to Spam or Archive.",
    )
    parser.add_argument("--username", default=defaults.IMAP_USERNAME, help="IMAP username")
    parser.add_argument("--password", default=defaults.IMAP_PASSWORD, help="IMAP password")
    parser.add_argument("--imap-server", default=defaults.IMAP_HOST, help="IMAP server")
    parser.add_argument("--port", type=int, default=defaults.IMAP_PORT, help="IMAP port (default: %(default)s)")
    parser.add_argument(
        "--use-tls",
        type=_parse_bool,
        nargs="?",
        const=True,
        default=defaults.IMAP_SSL,
        help="Use TLS (default: %(default)s); --use-tls=false for a plain connection",
    )
    parser.add_argument("--unread", action="store_true", help="Fetch only unread emails")
    parser.add_argument("--today", action="store_true", help="Fetch only emails received today")
    parser.add_argument(
        "--since",
        default=defaults.SINCE,
        help="Fetch emails since a specific date (YYYY-MM-DD); overrides --today",
    )
    parser.add_argument("--api-key", default=defaults.OPENAI_API_KEY, help="OpenAI API key")
    parser.add_argument("--model", default=defaults.OPENAI_MODEL, help="OpenAI model to use (default: %(default)s)")
    parser.add_argument("--mailbox", default=defaults.IMAP_FOLDER_INBOX, help="Mailbox to scan (default: %(default)s)")
    parser.add_argument("--spam-folder", default=defaults.IMAP_FOLDER_SPAM, help="Destination for junk (default: %(default)s)")
    parser.add_argument(
        "--archive-folder",
        default=defaults.IMAP_FOLDER_ARCHIVE,
        help="Destination for everything else (default: %(default)s)",
    )
    parser.add_argument(
        "--priority-sender",
        action="append",
        default=None,
        help=f"Sender substring that triggers a notification; repeatable (default: {defaults.PRIORITY_SENDERS})",
    )
    parser.add_argument(
        "--priority-keyword",
        action="append",
        default=None,
        help=f"Subject keyword that triggers a notification; repeatable (default: {defaults.PRIORITY_KEYWORDS})",
    )
    parser.add_argument("--dry-run", action="store_true", help="Log the routing decision without moving messages")
    parser.add_argument(
        "--no-create-folders",
        action="store_true",
        help="Fail the message instead of creating a missing destination folder",
    )
    parser.add_argument("--log-level", default=defaults.LOG_LEVEL, help="Logging level (default: %(default)s)")
    return parser
