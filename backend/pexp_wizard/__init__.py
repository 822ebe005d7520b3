from .config import WizardConfig
from .errors import (
    FieldError,
    NetworkError,
    QuotaExceededError,
    StorageError,
    StreamError,
    SubmissionError,
    WizardError,
)
from .models import PainPoint, WizardState
from .persistence import InMemoryKeyValueStore, SnapshotAdapter, SQLiteKeyValueStore
from .wizard import IntakeWizard, SubmitOutcome

__all__ = [
    "IntakeWizard",
    "SubmitOutcome",
    "WizardConfig",
    "WizardState",
    "PainPoint",
    "SnapshotAdapter",
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "WizardError",
    "FieldError",
    "StorageError",
    "QuotaExceededError",
    "NetworkError",
    "StreamError",
    "SubmissionError",
]
