# application/use_cases/classify_mail_usecase.py
from __future__ import annotations
import logging
import threading
from typing import Callable, Iterable, Protocol

from application.services.notifier import Notifier
from domain.errors import ClassifierError, MailStoreError, MessageError
from domain.models import JUNK_CATEGORY, BatchResult, MailDecision, MailItem
from utils.logging_setup import component_logger

CLASSIFIER_TEMPERATURE = 0.8

# (mail, destination folder) -> True if the store was actually changed
Mover = Callable[[MailItem, str], bool]


class Classifier(Protocol):
    def classify(self, prompt: str, temperature: float) -> str: ...


class ClassifyMailUseCase:
    def __init__(
        self,
        *,
        classifier: Classifier,
        notifier: Notifier,
        priority_senders: list[str],
        priority_keywords: list[str],
        spam_folder: str = "Spam",
        archive_folder: str = "Archive",
        max_mails: int = 10,
        logger: logging.LoggerAdapter | None = None,
    ) -> None:
        self.classifier = classifier
        self.notifier = notifier
        self.priority_senders = priority_senders
        self.priority_keywords = [k.lower() for k in priority_keywords]
        self.spam_folder = spam_folder
        self.archive_folder = archive_folder
        self.max_mails = max_mails
        self.logger = logger or component_logger("processor")

    # ───────── rules ─────────
    @staticmethod
    def build_prompt(mail: MailItem) -> str:
        date = mail.date.isoformat() if mail.date else ""
        return f"Subject: {mail.subject}\nFrom: {', '.join(mail.senders)}\nDate: {date}\n"

    def _is_priority_sender(self, mail: MailItem) -> bool:
        return any(sender in addr for addr in mail.senders for sender in self.priority_senders)

    def _has_priority_keyword(self, mail: MailItem) -> bool:
        subject = (mail.subject or "").lower()
        return any(keyword in subject for keyword in self.priority_keywords)

    def notify_if_priority(self, mail: MailItem) -> bool:
        """At most one notification per message; the sender rule wins over keywords."""
        if self._is_priority_sender(mail):
            self.notifier.notify(f"Priority email from: {', '.join(mail.senders)}", uid=mail.uid)
            return True
        if self._has_priority_keyword(mail):
            self.notifier.notify(f"Email with important keyword received: {mail.subject}", uid=mail.uid)
            return True
        return False

    def destination(self, category: str) -> str:
        return self.spam_folder if category == JUNK_CATEGORY else self.archive_folder

    # ───────── processing ─────────
    def categorize(self, mail: MailItem) -> str:
        return self.classifier.classify(self.build_prompt(mail), CLASSIFIER_TEMPERATURE).strip()

    def process_mail(self, mail: MailItem, mover: Mover) -> MailDecision:
        if mail.parse_error is not None:
            raise mail.parse_error
        category = self.categorize(mail)
        self.logger.info("Categorized email", extra={"uid": mail.uid, "subject": mail.subject, "category": category})

        notified = self.notify_if_priority(mail)
        folder = self.destination(category)
        moved = mover(mail, folder)
        self.logger.info(
            "Moved email" if moved else "Would move email",
            extra={"uid": mail.uid, "subject": mail.subject, "folder": folder},
        )
        return MailDecision(
            uid=mail.uid,
            subject=mail.subject,
            category=category,
            folder=folder,
            notified=notified,
            moved=moved,
        )

    def process_batch(
        self,
        messages: Iterable[MailItem],
        mover: Mover,
        stop_event: threading.Event | None = None,
    ) -> BatchResult:
        """
        Consumes ``messages`` in order until exhausted, ``max_mails`` were handled,
        or ``stop_event`` is set. The source is never advanced past the cap.
        A failing message is recorded in ``errors`` and the batch continues.
        """
        result = BatchResult()
        it = iter(messages)
        while result.processed < self.max_mails:
            if stop_event is not None and stop_event.is_set():
                self.logger.warning("Cancelled, stopping before the next message", extra={"processed": result.processed})
                result.cancelled = True
                break
            mail = next(it, None)
            if mail is None:
                break
            try:
                result.decisions.append(self.process_mail(mail, mover))
            except (ClassifierError, MailStoreError) as exc:
                err = MessageError(mail.uid, mail.subject, exc)
                self.logger.error("Failed to process email", extra={"uid": mail.uid, "subject": mail.subject, "error": str(exc)})
                result.errors.append(err)
        return result
