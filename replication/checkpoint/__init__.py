"""Replication checkpoints: dual-endpoint persistence and resume reconciliation."""

from .checkpointer import Checkpointer, CheckpointError, CheckpointWriteError
from .config import CheckpointerConfig, CouchStoreConfig, S3StoreConfig
from .couch_store import CouchDocumentStore
from .history import HISTORY_SIZE, CheckpointHistory, HistoryEntry, HistoryInvariantError, fold_history
from .local_store import LocalDocumentStore
from .models import LOWEST_SEQ, CheckpointDocument, EndpointOutcome, WriteResult, WriteStatus
from .reconcile import compare_checkpoints, compare_replication_logs
from .replication_id import generate_replication_id
from .s3_store import S3DocumentStore
from .store import (
    ConflictError,
    DocumentStore,
    ForbiddenError,
    MemoryDocumentStore,
    NotFoundError,
    PutResult,
    StoreError,
    StoreUnavailableError,
)

__all__ = [
    "Checkpointer",
    "CheckpointError",
    "CheckpointWriteError",
    "CheckpointerConfig",
    "CouchStoreConfig",
    "S3StoreConfig",
    "CouchDocumentStore",
    "LocalDocumentStore",
    "S3DocumentStore",
    "HISTORY_SIZE",
    "CheckpointHistory",
    "HistoryEntry",
    "HistoryInvariantError",
    "fold_history",
    "LOWEST_SEQ",
    "CheckpointDocument",
    "EndpointOutcome",
    "WriteResult",
    "WriteStatus",
    "compare_checkpoints",
    "compare_replication_logs",
    "generate_replication_id",
    "ConflictError",
    "DocumentStore",
    "ForbiddenError",
    "MemoryDocumentStore",
    "NotFoundError",
    "PutResult",
    "StoreError",
    "StoreUnavailableError",
]
