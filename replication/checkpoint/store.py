"""Document store adapter interface, error taxonomy and in-memory adapter."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Base class for document store failures."""

    status: int | None = None


class NotFoundError(StoreError):
    """The requested document does not exist."""

    status = 404


class ConflictError(StoreError):
    """Write rejected because the supplied revision is stale."""

    status = 409


class ForbiddenError(StoreError):
    """The store refuses writes (read-only endpoint or missing permission)."""

    status = 403


class StoreUnavailableError(StoreError):
    """The store could not be reached or answered with an unexpected error."""


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PutResult:
    ok: bool
    id: str
    rev: str


@runtime_checkable
class DocumentStore(Protocol):
    """Per-endpoint key/value document access with revisioned updates.

    ``put`` reads the expected current revision from ``doc["_rev"]``; a
    document without ``_rev`` is a create.
    """

    name: str

    async def get(self, doc_id: str) -> dict[str, Any]: ...

    async def put(self, doc: dict[str, Any]) -> PutResult: ...


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------

class MemoryDocumentStore:
    """Process-local store. Revisions follow the ``0-<n>`` form of local docs."""

    def __init__(self, name: str = "memory", read_only: bool = False) -> None:
        self.name = name
        self.read_only = read_only
        self._docs: dict[str, dict[str, Any]] = {}

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._docs

    async def get(self, doc_id: str) -> dict[str, Any]:
        try:
            return copy.deepcopy(self._docs[doc_id])
        except KeyError:
            raise NotFoundError(f"{self.name}: missing document {doc_id}") from None

    async def put(self, doc: dict[str, Any]) -> PutResult:
        if self.read_only:
            raise ForbiddenError(f"{self.name} is read-only")
        doc_id = doc.get("_id")
        if not doc_id:
            raise StoreError("document has no _id")

        current = self._docs.get(doc_id)
        expected = doc.get("_rev")
        if current is None:
            if expected is not None:
                raise ConflictError(f"{self.name}: {doc_id} has no revision {expected}")
            counter = 0
        else:
            if expected != current["_rev"]:
                raise ConflictError(
                    f"{self.name}: stale revision {expected} for {doc_id} (current {current['_rev']})"
                )
            counter = int(current["_rev"].split("-", 1)[1])

        rev = f"0-{counter + 1}"
        stored = copy.deepcopy(doc)
        stored["_rev"] = rev
        self._docs[doc_id] = stored
        return PutResult(ok=True, id=doc_id, rev=rev)
