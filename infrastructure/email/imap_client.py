# infrastructure/email/imap_client.py
from __future__ import annotations
import logging
from typing import Callable, Iterable, Iterator
from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError
import pyzmail

from domain.errors import MailStoreError
from domain.models import MailItem, SearchFilter
from utils.logging_setup import component_logger

FETCH_ITEMS = ["ENVELOPE", "BODY.PEEK[]"]


def build_search_criteria(search_filter: SearchFilter) -> list:
    """Every criterion is ANDed by the server; an empty filter matches ALL."""
    criteria: list = []
    if search_filter.unread:
        criteria.append("UNSEEN")
    if search_filter.since is not None:
        criteria += ["SINCE", search_filter.since]
    return criteria or ["ALL"]


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _envelope_senders(envelope) -> list[str]:
    senders: list[str] = []
    for addr in envelope.from_ or ():
        mailbox, host = _decode(addr.mailbox), _decode(addr.host)
        if mailbox and host:
            senders.append(f"{mailbox}@{host}")
        elif mailbox:
            senders.append(mailbox)
    return senders


def _body_text(msg: pyzmail.PyzMessage) -> str:
    part = msg.text_part or msg.html_part
    if part is None:
        return ""
    payload = part.get_payload()
    if isinstance(payload, bytes):
        try:
            return payload.decode(part.charset or "utf-8", errors="replace")
        except LookupError:
            # charsets like unknown-8bit have no Python codec
            return payload.decode("utf-8", errors="replace")
    return payload or ""


class IMAPInbox:
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        ssl: bool = True,
        *,
        logger: logging.LoggerAdapter | None = None,
        client_factory: Callable[..., IMAPClient] = IMAPClient,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.ssl = ssl
        self.logger = logger or component_logger("imap")
        self.client_factory = client_factory
        self.client: IMAPClient | None = None
        self.folder: str | None = None
        self._known_folders: set[str] = set()

    def __enter__(self) -> "IMAPInbox":
        try:
            self.client = self.client_factory(self.host, port=self.port, ssl=self.ssl)
        except (IMAPClientError, OSError) as exc:
            raise MailStoreError(f"unable to connect to the IMAP server {self.host}:{self.port}: {exc}") from exc
        try:
            self.client.login(self.user, self.password)
        except (IMAPClientError, OSError) as exc:
            self._logout()
            raise MailStoreError(f"unable to login as {self.user}: {exc}") from exc
        self.logger.info("Logged in to the IMAP server", extra={"host": self.host, "user": self.user})
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._logout()

    def _logout(self) -> None:
        try:
            if self.client:
                self.client.logout()
        except (IMAPClientError, OSError):
            self.logger.exception("Error closing the IMAP session")
        finally:
            self.client = None

    def _require_client(self) -> IMAPClient:
        if self.client is None:
            raise MailStoreError("IMAP session is not open")
        return self.client

    def select_folder(self, folder: str) -> dict:
        client = self._require_client()
        try:
            status = client.select_folder(folder, readonly=False)
        except (IMAPClientError, OSError) as exc:
            raise MailStoreError(f"unable to select {folder}: {exc}") from exc
        self.folder = folder
        self.logger.info("Mailbox selected", extra={"folder": folder, "exists": status.get(b"EXISTS")})
        return status

    def search(self, search_filter: SearchFilter) -> list[int]:
        client = self._require_client()
        criteria = build_search_criteria(search_filter)
        try:
            uids = client.search(criteria)
        except (IMAPClientError, OSError) as exc:
            raise MailStoreError(f"unable to search emails: {exc}") from exc
        self.logger.debug("Search done", extra={"criteria": " ".join(str(c) for c in criteria), "matches": len(uids)})
        return sorted(uids)

    def fetch_messages(self, uids: Iterable[int], chunk_size: int = 10) -> Iterator[MailItem]:
        """
        Yields messages in UID order, fetching at most ``chunk_size`` per round trip.
        Nothing is fetched until the consumer asks for it.
        """
        client = self._require_client()
        pending = list(uids)
        for start in range(0, len(pending), chunk_size):
            chunk = pending[start:start + chunk_size]
            try:
                resp = client.fetch(chunk, FETCH_ITEMS)
            except (IMAPClientError, OSError) as exc:
                raise MailStoreError(f"unable to fetch emails: {exc}") from exc
            for uid in chunk:
                data = resp.get(uid)
                if data is None:
                    self.logger.warning("Message vanished before fetch", extra={"uid": uid})
                    continue
                try:
                    item = self._to_mail_item(uid, data)
                except Exception as exc:
                    self.logger.error("Unable to parse email", extra={"uid": uid, "error": str(exc)})
                    item = MailItem(
                        uid=uid,
                        subject="",
                        senders=[],
                        date=None,
                        parse_error=MailStoreError(f"unable to parse UID={uid}: {exc}"),
                    )
                yield item

    @staticmethod
    def _to_mail_item(uid: int, data: dict) -> MailItem:
        envelope = data.get(b"ENVELOPE")
        raw = data.get(b"BODY[]") or b""
        msg = pyzmail.PyzMessage.factory(raw) if raw else None

        subject = ""
        senders: list[str] = []
        date = None
        if envelope is not None:
            subject = _decode(envelope.subject)
            senders = _envelope_senders(envelope)
            date = envelope.date
        if msg is not None:
            # pyzmail decodes RFC 2047 encoded words, the envelope does not
            subject = msg.get_subject() or subject
            if not senders:
                senders = [addr for _name, addr in msg.get_addresses("from") if addr]

        return MailItem(
            uid=uid,
            subject=subject,
            senders=senders,
            date=date,
            body=_body_text(msg) if msg is not None else "",
        )

    def ensure_folder(self, folder: str, create_missing: bool = True) -> None:
        client = self._require_client()
        try:
            if folder in self._known_folders or client.folder_exists(folder):
                self._known_folders.add(folder)
                return
            if not create_missing:
                raise MailStoreError(f"destination folder {folder!r} does not exist")
            client.create_folder(folder)
            self._known_folders.add(folder)
        except (IMAPClientError, OSError) as exc:
            raise MailStoreError(f"unable to prepare folder {folder!r}: {exc}") from exc
        self.logger.info("Folder created", extra={"folder": folder})

    def move_to(self, uid: int, dest_folder: str, create_missing: bool = True) -> None:
        client = self._require_client()
        self.ensure_folder(dest_folder, create_missing)
        try:
            if client.has_capability("MOVE"):
                client.move([uid], dest_folder)
            else:
                client.copy([uid], dest_folder)
                client.delete_messages([uid])
                if client.has_capability("UIDPLUS"):
                    client.expunge([uid])
                else:
                    # a bare EXPUNGE would also drop other \Deleted messages in the folder
                    self.logger.warning(
                        "Server lacks MOVE and UIDPLUS, original left flagged \\Deleted",
                        extra={"uid": uid, "folder": self.folder},
                    )
        except (IMAPClientError, OSError) as exc:
            raise MailStoreError(f"unable to move UID={uid} to {dest_folder}: {exc}") from exc
