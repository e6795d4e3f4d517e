"""Tests for the rolling checkpoint history."""

from __future__ import annotations

import pytest

from replication.checkpoint.history import (
    HISTORY_SIZE,
    CheckpointHistory,
    HistoryEntry,
    HistoryInvariantError,
    fold_history,
)
from replication.checkpoint.models import CheckpointDocument


def _history(*pairs) -> CheckpointHistory:
    return CheckpointHistory(HistoryEntry(s, q) for s, q in pairs)


def test_record_prepends_new_session():
    h = _history(("s1", 1)).record("s2", 2)
    assert h.session_ids() == ["s2", "s1"]
    assert h[0] == HistoryEntry("s2", 2)


def test_record_replaces_existing_session_in_place():
    h = _history(("s2", 5), ("s1", 1)).record("s1", 9)
    assert h.to_list() == [
        {"session_id": "s1", "last_seq": 9},
        {"session_id": "s2", "last_seq": 5},
    ]


def test_record_same_session_keeps_length():
    h = _history(("s1", 1)).record("s1", 2)
    assert len(h) == 1
    assert h[0].last_seq == 2


def test_record_evicts_oldest_beyond_capacity():
    h = CheckpointHistory()
    for i in range(1, 9):
        h = h.record(f"s{i}", i)
    assert len(h) == HISTORY_SIZE == 5
    assert h.session_ids() == ["s8", "s7", "s6", "s5", "s4"]


def test_record_returns_new_history():
    before = _history(("s1", 1))
    before.record("s2", 2)
    assert before.session_ids() == ["s1"]


def test_constructor_rejects_too_many_entries():
    with pytest.raises(HistoryInvariantError):
        _history(*[(f"s{i}", i) for i in range(6)])


def test_constructor_rejects_duplicate_sessions():
    with pytest.raises(HistoryInvariantError):
        _history(("s1", 2), ("s1", 1))


def test_from_records_normalises_foreign_history():
    records = [{"session_id": "s1", "last_seq": 9}, {"session_id": "s1", "last_seq": 3}]
    records += [{"session_id": f"x{i}", "last_seq": i} for i in range(10)]
    h = CheckpointHistory.from_records(records)
    assert len(h) == 5
    assert h[0] == HistoryEntry("s1", 9)
    assert h.session_ids() == ["s1", "x0", "x1", "x2", "x3"]


def test_from_records_handles_missing_history():
    assert len(CheckpointHistory.from_records(None)) == 0


def test_fold_history_returns_new_head():
    session_id, last_seq, h = fold_history("s1", 1, _history(("s1", 1)), "s2", 4)
    assert (session_id, last_seq) == ("s2", 4)
    assert h.session_ids() == ["s2", "s1"]


def test_fold_history_keeps_head_missing_from_history():
    session_id, last_seq, h = fold_history("old", 3, CheckpointHistory(), "s2", 4)
    assert (session_id, last_seq) == ("s2", 4)
    assert h.to_list() == [
        {"session_id": "s2", "last_seq": 4},
        {"session_id": "old", "last_seq": 3},
    ]


def test_fold_history_ignores_empty_head():
    _, _, h = fold_history("s1", None, CheckpointHistory(), "s1", 1)
    assert h.to_list() == [{"session_id": "s1", "last_seq": 1}]


def test_document_record_keeps_head_and_history_in_sync():
    doc = CheckpointDocument.empty("_local/x").record("s1", 1).record("s2", 2)
    data = doc.to_dict()
    assert data["last_seq"] == data["history"][0]["last_seq"] == 2
    assert data["session_id"] == data["history"][0]["session_id"] == "s2"
    assert "_rev" not in data


def test_document_round_trip_keeps_unknown_fields():
    stored = {
        "_id": "_local/x",
        "_rev": "0-3",
        "session_id": "s1",
        "last_seq": "12-abc",
        "history": [{"session_id": "s1", "last_seq": "12-abc"}],
        "replicator": "pouchdb",
        "version": 1,
        "custom": {"owner": "sync"},
    }
    assert CheckpointDocument.from_dict(stored).to_dict() == stored
