"""CouchDB HTTP document store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from .config import CouchStoreConfig
from .models import LOCAL_PREFIX
from .store import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PutResult,
    StoreError,
    StoreUnavailableError,
)

logger = logging.getLogger("replication.checkpoint.couch")


def _doc_path(doc_id: str) -> str:
    # _local/ must stay literal, the rest of the id is escaped.
    if doc_id.startswith(LOCAL_PREFIX):
        return LOCAL_PREFIX + quote(doc_id[len(LOCAL_PREFIX):], safe="")
    return quote(doc_id, safe="")


class CouchDocumentStore:
    """Reads and writes checkpoint documents of one CouchDB database."""

    def __init__(self, config: CouchStoreConfig) -> None:
        self._config = config
        self.name = config.name
        self._base = f"{config.url.rstrip('/')}/{quote(config.database, safe='')}"
        self._auth = (
            aiohttp.BasicAuth(config.username, config.password) if config.username else None
        )
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_s)

    def _error(self, status: int, doc_id: str, reason: str) -> StoreError:
        if status == 404:
            return NotFoundError(f"{self.name}: missing document {doc_id}")
        if status == 409:
            return ConflictError(f"{self.name}: document update conflict on {doc_id}")
        if status in (401, 403):
            return ForbiddenError(f"{self.name}: {reason}")
        return StoreUnavailableError(f"{self.name}: HTTP {status} for {doc_id}: {reason}")

    async def _request(self, method: str, doc_id: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._base}/{_doc_path(doc_id)}"
        try:
            async with aiohttp.ClientSession(auth=self._auth, timeout=self._timeout) as sess:
                async with sess.request(method, url, **kwargs) as resp:
                    if resp.status >= 300:
                        reason = await resp.text()
                        raise self._error(resp.status, doc_id, reason.strip() or resp.reason or "")
                    data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise StoreUnavailableError(f"{self.name}: {method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise StoreUnavailableError(f"{self.name}: {method} {url} returned bad JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreUnavailableError(f"{self.name}: {method} {url} did not return a JSON object")
        return data

    # -- public API -----------------------------------------------------------

    async def get(self, doc_id: str) -> dict[str, Any]:
        return await self._request("GET", doc_id)

    async def put(self, doc: dict[str, Any]) -> PutResult:
        body = {k: v for k, v in doc.items() if k != "_rev" or v is not None}
        data = await self._request("PUT", doc["_id"], json=body)
        if "rev" not in data:
            raise StoreUnavailableError(f"{self.name}: PUT {doc['_id']} reply has no rev")
        logger.debug("PUT %s on %s -> rev %s", doc["_id"], self.name, data["rev"])
        return PutResult(ok=bool(data.get("ok")), id=data.get("id", doc["_id"]), rev=data["rev"])
