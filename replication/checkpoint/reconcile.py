"""Resume-point reconciliation between the source and target checkpoints.

Checkpoint writes always land on the target before the source (see
``Checkpointer.write_checkpoint``). So whenever both copies know a session,
the source's seq for it is the one confirmed on both endpoints. That is why
a match always resolves to the source's value, even when the target has
already moved further within the same session. The write ordering and this
tie-break only hold together; changing one breaks the other.
"""

from __future__ import annotations

import logging
from typing import Any

from .history import HistoryEntry
from .models import CHECKPOINT_VERSION, LOWEST_SEQ, CheckpointDocument

logger = logging.getLogger("replication.checkpoint.reconcile")


def _candidates(doc: CheckpointDocument | None) -> list[HistoryEntry]:
    """Current state first, then the stored history."""
    if doc is None:
        return []
    head = [HistoryEntry(doc.session_id, doc.last_seq)] if doc.session_id is not None else []
    return head + list(doc.history)


def compare_replication_logs(
    source: CheckpointDocument | None, target: CheckpointDocument | None
) -> Any:
    """Return the newest seq both endpoints agree on, or ``LOWEST_SEQ``."""
    target_sessions = {e.session_id for e in _candidates(target)}
    for entry in _candidates(source):
        if entry.session_id in target_sessions:
            logger.debug("Common session %s found, resuming at %r", entry.session_id, entry.last_seq)
            return entry.last_seq
    logger.debug("No common session between source and target checkpoints")
    return LOWEST_SEQ


def compare_checkpoints(
    source: CheckpointDocument | None, target: CheckpointDocument | None
) -> Any:
    """Resolve the resume seq from both endpoints' documents, by schema version."""
    if source is None or target is None:
        # Never written on one side: no evidence of agreement.
        return LOWEST_SEQ

    if source.version != target.version:
        logger.info(
            "Checkpoint versions differ (source=%r, target=%r), restarting from %r",
            source.version, target.version, LOWEST_SEQ,
        )
        return LOWEST_SEQ

    if source.version is None:
        # Legacy documents carry no usable history.
        if source.last_seq == target.last_seq:
            return source.last_seq
        return LOWEST_SEQ

    if source.version == CHECKPOINT_VERSION:
        return compare_replication_logs(source, target)

    logger.warning("Unknown checkpoint version %r, restarting from %r", source.version, LOWEST_SEQ)
    return LOWEST_SEQ
