from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    code: str
    message: str


class WizardError(Exception):
    pass


class StorageError(WizardError):
    pass


class QuotaExceededError(StorageError):
    pass


class NetworkError(WizardError):
    pass


class StreamError(NetworkError):
    pass


class SubmissionError(WizardError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
