"""Checkpointer: dual-endpoint checkpoint writes and resume-point lookup."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .config import CheckpointerConfig
from .models import (
    LOWEST_SEQ,
    CheckpointDocument,
    EndpointOutcome,
    WriteResult,
    WriteStatus,
)
from .reconcile import compare_checkpoints
from .store import ConflictError, DocumentStore, ForbiddenError, NotFoundError, StoreError

logger = logging.getLogger("replication.checkpoint")

_UNSET = object()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CheckpointError(Exception):
    """Base class for checkpointer failures."""


class CheckpointWriteError(CheckpointError):
    """One or both endpoint writes failed. The other endpoint was still attempted."""

    def __init__(self, result: WriteResult, errors: dict[str, StoreError]) -> None:
        self.result = result
        self.errors = errors
        detail = ", ".join(f"{endpoint}: {exc}" for endpoint, exc in errors.items())
        super().__init__(f"Checkpoint write failed for {result.id} ({detail})")


# ---------------------------------------------------------------------------
# Checkpointer
# ---------------------------------------------------------------------------

class Checkpointer:
    """Owns the checkpoint documents of one replication on both endpoints.

    There is no transaction across the two endpoints. Each write is an
    independent optimistic-concurrency upsert, issued to the target first
    and to the source only once the target outcome is known. Consequently
    the source never records a seq the target has not recorded first, and
    ``get_checkpoint`` resolves a diverged pair to the source's seq for
    their newest common session (see ``reconcile``).
    """

    def __init__(
        self,
        src: DocumentStore,
        target: DocumentStore,
        id: str,
        replication: Any = None,
        config: CheckpointerConfig | None = None,
    ) -> None:
        self.src = src
        self.target = target
        self.id = id
        self.replication = replication
        self.config = config or CheckpointerConfig()
        self.write_source_checkpoint = self.config.write_source_checkpoint
        self.write_target_checkpoint = self.config.write_target_checkpoint
        self._last_written_seq: Any = _UNSET

    # -- helpers --------------------------------------------------------------

    def _cancelled(self) -> bool:
        replication = self.replication
        if replication is None:
            return False
        if isinstance(replication, Mapping):
            return bool(replication.get("cancelled"))
        return bool(getattr(replication, "cancelled", False))

    async def _read(self, store: DocumentStore) -> CheckpointDocument | None:
        try:
            return CheckpointDocument.from_dict(await store.get(self.id))
        except NotFoundError:
            return None

    async def _update_checkpoint(
        self, store: DocumentStore, seq: Any, session_id: str
    ) -> tuple[WriteStatus, str | None]:
        """Read-fold-put against one store, re-reading on revision conflicts."""
        conflicts = 0
        while True:
            doc = await self._read(store) or CheckpointDocument.empty(self.id, session_id)
            if self._cancelled():
                return WriteStatus.SKIPPED, None
            if doc.last_seq == seq:
                return WriteStatus.UNCHANGED, doc.rev

            try:
                result = await store.put(doc.record(session_id, seq).to_dict())
            except ConflictError:
                if conflicts >= self.config.max_conflict_retries:
                    raise
                conflicts += 1
                logger.warning(
                    "Checkpoint %s conflicted on %s, retrying (%d/%d)",
                    self.id, store.name, conflicts, self.config.max_conflict_retries,
                )
                continue
            return WriteStatus.WRITTEN, result.rev

    # -- public API -----------------------------------------------------------

    async def write_checkpoint(self, seq: Any, session_id: str) -> WriteResult:
        """Record *seq* for *session_id* on every enabled endpoint.

        Raises CheckpointWriteError after both endpoints were attempted if
        either write failed.
        """
        if not (self.write_source_checkpoint or self.write_target_checkpoint):
            return WriteResult(status=WriteStatus.SKIPPED, id=self.id)
        if self._last_written_seq is not _UNSET and self._last_written_seq == seq:
            logger.debug("Checkpoint %s already at seq %r, not writing", self.id, seq)
            return WriteResult(status=WriteStatus.UNCHANGED, id=self.id)

        outcomes: list[EndpointOutcome] = []
        errors: dict[str, StoreError] = {}

        # Target strictly before source; the reconciliation depends on it.
        for endpoint in ("target", "source"):
            if endpoint == "target" and not self.write_target_checkpoint:
                continue
            if endpoint == "source" and not self.write_source_checkpoint:
                continue
            store = self.target if endpoint == "target" else self.src
            outcome = EndpointOutcome(endpoint=endpoint)
            outcomes.append(outcome)
            try:
                outcome.status, outcome.rev = await self._update_checkpoint(store, seq, session_id)
            except ForbiddenError as exc:
                if endpoint == "source":
                    logger.warning(
                        "Source %s refused checkpoint %s (%s), disabling source checkpoints",
                        store.name, self.id, exc,
                    )
                    self.write_source_checkpoint = False
                    outcome.status = WriteStatus.SKIPPED
                    continue
                logger.error("Checkpoint write to %s %s failed: %s", endpoint, store.name, exc)
                outcome.error = str(exc)
                errors[endpoint] = exc
            except StoreError as exc:
                logger.error("Checkpoint write to %s %s failed: %s", endpoint, store.name, exc)
                outcome.error = str(exc)
                errors[endpoint] = exc
            else:
                if outcome.status is WriteStatus.WRITTEN:
                    logger.info(
                        "Checkpoint %s written to %s %s at seq %r (rev %s)",
                        self.id, endpoint, store.name, seq, outcome.rev,
                    )

        statuses = [o.status for o in outcomes if o.ok]
        if WriteStatus.WRITTEN in statuses:
            status = WriteStatus.WRITTEN
        elif WriteStatus.UNCHANGED in statuses:
            status = WriteStatus.UNCHANGED
        else:
            status = WriteStatus.SKIPPED

        rev = None
        for outcome in outcomes:
            if outcome.status is WriteStatus.WRITTEN:
                rev = outcome.rev
        result = WriteResult(status=status, id=self.id, rev=rev, endpoints=outcomes)

        if errors:
            if len(errors) < len(outcomes):
                logger.warning("Checkpoint %s diverged between endpoints at seq %r", self.id, seq)
            raise CheckpointWriteError(result, errors)
        if status is not WriteStatus.SKIPPED:
            self._last_written_seq = seq
        return result

    async def get_checkpoint(self) -> Any:
        """Return the seq replication can safely resume from."""
        if not self.write_source_checkpoint and not self.write_target_checkpoint:
            return LOWEST_SEQ

        if self.write_source_checkpoint != self.write_target_checkpoint:
            store = self.src if self.write_source_checkpoint else self.target
            doc = await self._read(store)
            if doc is None or not doc.last_seq:
                return LOWEST_SEQ
            return doc.last_seq

        source_doc, target_doc = await asyncio.gather(self._read(self.src), self._read(self.target))
        if source_doc is None and target_doc is None:
            return LOWEST_SEQ
        seq = compare_checkpoints(source_doc, target_doc)
        logger.debug(
            "Checkpoint %s resolved to %r (source=%r, target=%r)",
            self.id, seq,
            source_doc.last_seq if source_doc else None,
            target_doc.last_seq if target_doc else None,
        )
        return seq
