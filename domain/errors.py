# domain/errors.py
from __future__ import annotations


class TriageError(Exception):
    """Base error for the triage run."""


class ConfigError(TriageError):
    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class MailStoreError(TriageError):
    pass


class ClassifierError(TriageError):
    pass


class MessageError(TriageError):
    """Failure handling one message; the batch keeps going."""

    def __init__(self, uid: int, subject: str, cause: Exception) -> None:
        self.uid = uid
        self.subject = subject
        self.cause = cause
        super().__init__(f"uid={uid} subject={subject!r}: {cause}")


class BatchError(TriageError):
    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} message(s) failed: " + "; ".join(str(e) for e in self.errors))
