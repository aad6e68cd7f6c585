# interface_adapters/controllers/triage_controller.py
from __future__ import annotations
import logging
import threading
from datetime import date
from typing import Callable

from config.settings import Settings
from application.services.notifier import LogNotifier
from application.use_cases.classify_mail_usecase import Classifier, ClassifyMailUseCase
from domain.errors import BatchError
from domain.models import BatchResult, MailItem
from infrastructure.email.imap_client import IMAPInbox
from infrastructure.llm.openai_client import OpenAIClassifier
from utils.logging_setup import component_logger

InboxFactory = Callable[[Settings], IMAPInbox]


def default_inbox(settings: Settings) -> IMAPInbox:
    return IMAPInbox(
        settings.IMAP_HOST,
        settings.IMAP_PORT,
        settings.IMAP_USERNAME,
        settings.IMAP_PASSWORD,
        settings.IMAP_SSL,
        logger=component_logger("imap"),
    )


class TriageController:
    def __init__(
        self,
        settings: Settings,
        *,
        classifier: Classifier | None = None,
        inbox_factory: InboxFactory = default_inbox,
        logger: logging.LoggerAdapter | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or component_logger("controller")
        self.inbox_factory = inbox_factory
        self.classifier = classifier or OpenAIClassifier(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            base=settings.OPENAI_API_BASE,
            timeout=settings.OPENAI_TIMEOUT,
            logger=component_logger("classifier"),
        )
        self.uc = ClassifyMailUseCase(
            classifier=self.classifier,
            notifier=LogNotifier(component_logger("notifier")),
            priority_senders=settings.priority_senders(),
            priority_keywords=settings.priority_keywords(),
            spam_folder=settings.IMAP_FOLDER_SPAM,
            archive_folder=settings.IMAP_FOLDER_ARCHIVE,
            max_mails=settings.MAX_MAILS_PER_RUN,
            logger=component_logger("processor"),
        )

    def _mover(self, inbox: IMAPInbox) -> Callable[[MailItem, str], bool]:
        st = self.settings

        def move(mail: MailItem, folder: str) -> bool:
            if st.DRY_RUN:
                return False
            inbox.move_to(mail.uid, folder, create_missing=st.IMAP_CREATE_FOLDERS)
            return True

        return move

    def run_once(self, stop_event: threading.Event | None = None, today: date | None = None) -> BatchResult:
        st = self.settings
        # ConfigError here aborts before any connection is opened
        search_filter = st.search_filter(today=today)

        with self.inbox_factory(st) as inbox:
            inbox.select_folder(st.IMAP_FOLDER_INBOX)
            uids = inbox.search(search_filter)
            if not uids:
                self.logger.info("No emails found with the specified criteria", extra={"folder": st.IMAP_FOLDER_INBOX})
                return BatchResult()

            batch = uids[: st.MAX_MAILS_PER_RUN]
            self.logger.info("Processing emails", extra={"matched": len(uids), "batch": len(batch)})
            messages = inbox.fetch_messages(batch, chunk_size=st.MAX_MAILS_PER_RUN)
            result = self.uc.process_batch(messages, self._mover(inbox), stop_event=stop_event)

        self.logger.info(
            "Batch finished",
            extra={
                "processed": result.processed,
                "failed": len(result.errors),
                "spam": sum(1 for d in result.decisions if d.folder == st.IMAP_FOLDER_SPAM),
                "cancelled": result.cancelled,
            },
        )
        if result.errors:
            raise BatchError(result.errors)
        return result
