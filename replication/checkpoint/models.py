"""Checkpoint document schema and write outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .history import CheckpointHistory, fold_history

LOWEST_SEQ = 0
REPLICATOR = "pouchdb"
CHECKPOINT_VERSION = 1
LOCAL_PREFIX = "_local/"

# Fields owned by the checkpoint schema; anything else is carried through.
_SCHEMA_FIELDS = {"_id", "_rev", "session_id", "last_seq", "history", "replicator", "version"}


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

@dataclass
class CheckpointDocument:
    """One endpoint's copy of a replication checkpoint.

    ``last_seq`` and ``session_id`` mirror the head of ``history`` whenever
    the document was written through :meth:`record`.
    """

    id: str
    session_id: str | None = None
    last_seq: Any = None
    history: CheckpointHistory = field(default_factory=CheckpointHistory)
    rev: str | None = None
    replicator: str = REPLICATOR
    version: int | None = CHECKPOINT_VERSION
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls, doc_id: str, session_id: str | None = None) -> CheckpointDocument:
        """Fresh document for an endpoint that has never been checkpointed."""
        return cls(id=doc_id, session_id=session_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckpointDocument:
        return cls(
            id=data["_id"],
            session_id=data.get("session_id"),
            last_seq=data.get("last_seq"),
            history=CheckpointHistory.from_records(data.get("history")),
            rev=data.get("_rev"),
            replicator=data.get("replicator", REPLICATOR),
            version=data.get("version"),
            extra={k: v for k, v in data.items() if k not in _SCHEMA_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            **self.extra,
            "_id": self.id,
            "session_id": self.session_id,
            "last_seq": self.last_seq,
            "history": self.history.to_list(),
            "replicator": self.replicator,
            "version": self.version,
        }
        if self.rev is not None:
            doc["_rev"] = self.rev
        return doc

    def record(self, session_id: str, last_seq: Any) -> CheckpointDocument:
        """Return a copy advanced to *last_seq* for *session_id*, same revision."""
        session_id, last_seq, history = fold_history(
            self.session_id, self.last_seq, self.history, session_id, last_seq
        )
        return CheckpointDocument(
            id=self.id,
            session_id=session_id,
            last_seq=last_seq,
            history=history,
            rev=self.rev,
            replicator=REPLICATOR,
            version=CHECKPOINT_VERSION,
            extra=dict(self.extra),
        )


# ---------------------------------------------------------------------------
# Write outcomes
# ---------------------------------------------------------------------------

class WriteStatus(str, enum.Enum):
    WRITTEN = "written"      # at least one endpoint stored a new revision
    UNCHANGED = "unchanged"  # seq already recorded, nothing stored
    SKIPPED = "skipped"      # no endpoint enabled or replication cancelled


@dataclass
class EndpointOutcome:
    endpoint: str            # "target" or "source"
    status: WriteStatus | None = None
    rev: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteResult:
    status: WriteStatus
    id: str
    rev: str | None = None
    endpoints: list[EndpointOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(e.ok for e in self.endpoints)
