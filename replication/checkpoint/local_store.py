"""Filesystem-backed document store: one JSON file per checkpoint document."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote

from .store import ConflictError, ForbiddenError, NotFoundError, PutResult, StoreUnavailableError

logger = logging.getLogger("replication.checkpoint.local")


class LocalDocumentStore:
    """Stores documents under *base_path*; revisions are ``<n>-<md5 of body>``.

    The revision check and the write happen under a lock held by this
    instance only. A directory must therefore have a single owning store:
    two instances or processes writing the same *base_path* are not
    serialised against each other and the last write wins.
    """

    def __init__(self, base_path: str | Path, name: str | None = None) -> None:
        self.base_path = Path(base_path)
        self.name = name or self.base_path.name
        self._lock = asyncio.Lock()

    # -- helpers --------------------------------------------------------------

    def _path(self, doc_id: str) -> Path:
        return self.base_path / f"{quote(doc_id, safe='')}.json"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            os.write(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = -1  # mark as closed
            os.replace(tmp, path)
        except BaseException:
            if fd >= 0:
                try:
                    os.close(fd)
                except OSError:
                    pass
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _read(self, doc_id: str) -> dict[str, Any]:
        path = self._path(doc_id)
        try:
            return json.loads(path.read_bytes())
        except FileNotFoundError:
            raise NotFoundError(f"{self.name}: missing document {doc_id}") from None
        except (OSError, ValueError) as exc:
            raise StoreUnavailableError(f"{self.name}: cannot read {path}: {exc}") from exc

    # -- public API -----------------------------------------------------------

    async def get(self, doc_id: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._read, doc_id)

    async def put(self, doc: dict[str, Any]) -> PutResult:
        doc_id = doc["_id"]
        async with self._lock:
            try:
                current: dict[str, Any] | None = await self.get(doc_id)
            except NotFoundError:
                current = None

            expected = doc.get("_rev")
            current_rev = current.get("_rev") if current else None
            if expected != current_rev:
                raise ConflictError(
                    f"{self.name}: stale revision {expected} for {doc_id} (current {current_rev})"
                )

            generation = int(current_rev.split("-", 1)[0]) if current_rev else 0
            body = {k: v for k, v in doc.items() if k != "_rev"}
            digest = hashlib.md5(
                json.dumps(body, sort_keys=True, default=str).encode()
            ).hexdigest()
            rev = f"{generation + 1}-{digest}"
            body["_rev"] = rev

            data = json.dumps(body, default=str, ensure_ascii=False).encode()
            try:
                await asyncio.to_thread(self._atomic_write, self._path(doc_id), data)
            except PermissionError as exc:
                raise ForbiddenError(f"{self.name}: {exc}") from exc
            except OSError as exc:
                raise StoreUnavailableError(f"{self.name}: write failed: {exc}") from exc

        logger.debug("Wrote %s to %s (rev %s)", doc_id, self.base_path, rev)
        return PutResult(ok=True, id=doc_id, rev=rev)
