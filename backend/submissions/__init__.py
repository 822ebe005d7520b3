from .database import SQLiteSubmissionDB
from .store import SubmissionStore

__all__ = ["SQLiteSubmissionDB", "SubmissionStore"]
