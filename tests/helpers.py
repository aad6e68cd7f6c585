from __future__ import annotations

from datetime import datetime

from imapclient.response_types import Address, Envelope

from config.settings import Settings
from domain.errors import ClassifierError
from domain.models import MailItem


def make_settings(**overrides) -> Settings:
    values = dict(
        IMAP_HOST="imap.example.test",
        IMAP_USERNAME="user@example.test",
        IMAP_PASSWORD="secret",
        OPENAI_API_KEY="sk-test",
    )
    values.update(overrides)
    return Settings(**values)


def make_mail(
    uid: int = 1,
    *,
    subject: str = "Hello",
    senders: list[str] | None = None,
    date: datetime | None = datetime(2026, 10, 18, 9, 30),
) -> MailItem:
    return MailItem(
        uid=uid,
        subject=subject,
        senders=senders if senders is not None else ["someone@example.test"],
        date=date,
        body="body",
    )


def make_raw_message(uid: int, subject: str, sender: str) -> bytes:
    return (
        f"From: Sender <{sender}>\r\n"
        f"To: user@example.test\r\n"
        f"Subject: {subject}\r\n"
        f"Message-ID: <msg-{uid}@example.test>\r\n"
        "Content-Type: text/plain; charset=utf-8\r\n"
        "\r\n"
        f"Body of message {uid}\r\n"
    ).encode("utf-8")


def make_unknown_charset_message(subject: str, sender: str) -> bytes:
    return (
        f"From: Sender <{sender}>\r\n"
        f"Subject: {subject}\r\n"
        "Content-Type: text/plain; charset=x-unknown-8bit\r\n"
        "Content-Transfer-Encoding: 8bit\r\n"
        "\r\n"
    ).encode("ascii") + b"legacy body \xff\r\n"


def make_envelope(subject: str, sender: str) -> Envelope:
    mailbox, host = sender.split("@", 1)
    return Envelope(
        date=datetime(2026, 10, 18, 9, 30),
        subject=subject.encode("utf-8"),
        from_=(Address(b"Sender", None, mailbox.encode(), host.encode()),),
        sender=None,
        reply_to=None,
        to=None,
        cc=None,
        bcc=None,
        in_reply_to=None,
        message_id=None,
    )


class StubClassifier:
    """Returns ``reply(prompt)`` and records every prompt it was given."""

    def __init__(self, reply=lambda prompt: "newsletter") -> None:
        self.reply = reply
        self.calls: list[tuple[str, float]] = []

    def classify(self, prompt: str, temperature: float) -> str:
        self.calls.append((prompt, temperature))
        return self.reply(prompt)


def junk_when_offer(prompt: str) -> str:
    return "junk" if "offer" in prompt.lower() else "personal"


def failing_for(subject: str):
    def reply(prompt: str) -> str:
        if subject in prompt:
            raise ClassifierError("model unavailable")
        return "personal"

    return reply


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str, **context) -> None:
        self.messages.append(message)


class FakeIMAPClient:
    """In-memory stand-in for imapclient.IMAPClient with the calls the inbox uses."""

    def __init__(
        self,
        host: str,
        port: int = 993,
        ssl: bool = True,
        *,
        messages: dict[int, tuple[str, str]] | None = None,
        folders: set[str] | None = None,
        capabilities: tuple[bytes, ...] = (b"MOVE",),
        login_error: Exception | None = None,
        errors: dict[str, Exception] | None = None,
        raw_overrides: dict[int, bytes] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.ssl = ssl
        self.messages = dict(messages or {})
        self.folders = set(folders if folders is not None else {"INBOX", "Spam", "Archive"})
        self.capabilities = capabilities
        self.login_error = login_error
        self.errors = dict(errors or {})
        self.raw_overrides = dict(raw_overrides or {})
        self.logged_in = False
        self.logged_out = False
        self.selected: str | None = None
        self.search_calls: list[list] = []
        self.fetch_calls: list[list[int]] = []
        self.moves: list[tuple[int, str]] = []
        self.created: list[str] = []
        self.deleted: list[int] = []
        self.expunge_calls: list = []

    def login(self, user: str, password: str) -> None:
        if self.login_error is not None:
            raise self.login_error
        self.logged_in = True

    def logout(self) -> None:
        self.logged_out = True

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    def select_folder(self, folder: str, readonly: bool = False) -> dict:
        self._maybe_fail("select_folder")
        self.selected = folder
        return {b"EXISTS": len(self.messages)}

    def search(self, criteria) -> list[int]:
        self._maybe_fail("search")
        self.search_calls.append(list(criteria))
        return sorted(self.messages)

    def fetch(self, uids, items) -> dict:
        self.fetch_calls.append(list(uids))
        self._maybe_fail("fetch")
        out = {}
        for uid in uids:
            if uid not in self.messages:
                continue
            subject, sender = self.messages[uid]
            out[uid] = {
                b"SEQ": uid,
                b"ENVELOPE": make_envelope(subject, sender),
                b"BODY[]": self.raw_overrides.get(uid) or make_raw_message(uid, subject, sender),
            }
        return out

    def folder_exists(self, folder: str) -> bool:
        return folder in self.folders

    def create_folder(self, folder: str) -> None:
        self.folders.add(folder)
        self.created.append(folder)

    def has_capability(self, capability: str) -> bool:
        return capability.encode() in self.capabilities

    def move(self, uids, folder: str) -> None:
        for uid in uids:
            self.moves.append((uid, folder))

    def copy(self, uids, folder: str) -> None:
        for uid in uids:
            self.moves.append((uid, folder))

    def delete_messages(self, uids) -> None:
        self.deleted.extend(uids)

    def expunge(self, messages=None) -> None:
        self.expunge_calls.append(messages)
