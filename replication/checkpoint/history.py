"""Rolling per-session history of checkpoint positions.

Each checkpoint document keeps a short, most-recent-first log of the
replication sessions that wrote it. Two endpoints that resumed
independently since they last agreed can still find a common session in
their logs, which is what the resume reconciliation relies on.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

HISTORY_SIZE = 5


class HistoryInvariantError(ValueError):
    """Raised when a history would exceed its capacity or repeat a session."""


@dataclass(frozen=True)
class HistoryEntry:
    session_id: str
    last_seq: Any

    def to_dict(self) -> dict[str, Any]:
        return {"session_id": self.session_id, "last_seq": self.last_seq}


class CheckpointHistory(Sequence[HistoryEntry]):
    """Immutable capped list of entries, unique by ``session_id``."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self._entries: tuple[HistoryEntry, ...] = tuple(entries)
        self._check()

    def _check(self) -> None:
        if len(self._entries) > HISTORY_SIZE:
            raise HistoryInvariantError(
                f"history holds {len(self._entries)} entries, limit is {HISTORY_SIZE}"
            )
        seen: set[str] = set()
        for entry in self._entries:
            if entry.session_id in seen:
                raise HistoryInvariantError(f"duplicate session {entry.session_id!r} in history")
            seen.add(entry.session_id)

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]] | None) -> CheckpointHistory:
        """Load stored records, keeping the first entry per session and the newest five."""
        entries: list[HistoryEntry] = []
        seen: set[str] = set()
        for record in records or ():
            session_id = record.get("session_id")
            if session_id is None or session_id in seen:
                continue
            seen.add(session_id)
            entries.append(HistoryEntry(session_id, record.get("last_seq")))
            if len(entries) == HISTORY_SIZE:
                break
        return cls(entries)

    def record(self, session_id: str, last_seq: Any) -> CheckpointHistory:
        """Return a new history with *session_id* moved to the front at *last_seq*."""
        kept = [e for e in self._entries if e.session_id != session_id]
        kept.insert(0, HistoryEntry(session_id, last_seq))
        return CheckpointHistory(kept[:HISTORY_SIZE])

    def session_ids(self) -> list[str]:
        return [e.session_id for e in self._entries]

    def to_list(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    # -- Sequence protocol ----------------------------------------------------

    def __getitem__(self, index):  # type: ignore[override]
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CheckpointHistory):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"CheckpointHistory({list(self._entries)!r})"


def fold_history(
    session_id: str | None,
    last_seq: Any,
    history: CheckpointHistory,
    new_session_id: str,
    new_last_seq: Any,
) -> tuple[str, Any, CheckpointHistory]:
    """Fold a new ``(session, seq)`` pair into a document's current state.

    A head that never made it into *history* (documents written before
    histories existed) is recorded first so its resume point survives.
    """
    if session_id is not None and last_seq is not None and session_id not in history.session_ids():
        history = history.record(session_id, last_seq)
    return new_session_id, new_last_seq, history.record(new_session_id, new_last_seq)
