"""Storage abstractions for pushbridge."""

from .chroma import ChromaEvent, ChromaStore, ChromaUnavailableError
from .local import LocalStorage
from .mirrors import STORAGE_KEY, MirrorStore
from .models import AuthMethod, MirrorRecord
from .operations import OPERATION_STATUSES, Operation, OperationLedger

__all__ = [
    "AuthMethod",
    "ChromaEvent",
    "ChromaStore",
    "ChromaUnavailableError",
    "LocalStorage",
    "MirrorRecord",
    "MirrorStore",
    "OPERATION_STATUSES",
    "Operation",
    "OperationLedger",
    "STORAGE_KEY",
]
