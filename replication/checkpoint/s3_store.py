"""Async S3 document store for checkpoint documents."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import S3StoreConfig
from .store import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PutResult,
    StoreError,
    StoreUnavailableError,
)

logger = logging.getLogger("replication.checkpoint.s3")

_NOT_FOUND = {"NoSuchKey", "NotFound", "404"}
_CONFLICT = {"PreconditionFailed", "ConditionalRequestConflict"}
_FORBIDDEN = {"AccessDenied", "AllAccessDisabled", "403"}


def _map_client_error(exc: ClientError, key: str) -> StoreError:
    code = exc.response.get("Error", {}).get("Code", "")
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if code in _NOT_FOUND or status == 404:
        return NotFoundError(f"s3 key {key} not found")
    if code in _CONFLICT or status in (409, 412):
        return ConflictError(f"s3 key {key} changed concurrently ({code or status})")
    if code in _FORBIDDEN or status == 403:
        return ForbiddenError(f"s3 key {key}: {code or status}")
    return StoreUnavailableError(f"s3 key {key}: {exc}")


class S3DocumentStore:
    """Thin async S3 wrapper (AWS S3, Cloudflare R2, MinIO).

    The object ETag is the document revision; writes are conditional on it
    so a stale revision is rejected by S3 itself.
    """

    def __init__(self, config: S3StoreConfig) -> None:
        self._config = config
        self.name = config.name
        self._session = aioboto3.Session(
            aws_access_key_id=config.s3_access_key or None,
            aws_secret_access_key=config.s3_secret_key or None,
            region_name=config.s3_region,
        )
        self._extra: dict[str, str] = {}
        if config.s3_endpoint_url:
            self._extra["endpoint_url"] = config.s3_endpoint_url

    def _key(self, doc_id: str) -> str:
        return f"{self._config.key_prefix}{quote(doc_id, safe='')}.json"

    # -- public API -----------------------------------------------------------

    async def get(self, doc_id: str) -> dict[str, Any]:
        """Download and parse the document; ``_rev`` is the object ETag."""
        key = self._key(doc_id)
        try:
            async with self._session.client("s3", **self._extra) as s3:
                resp = await s3.get_object(Bucket=self._config.s3_bucket, Key=key)
                body = await resp["Body"].read()
        except ClientError as exc:
            raise _map_client_error(exc, key) from exc
        except BotoCoreError as exc:
            raise StoreUnavailableError(f"s3 key {key}: {exc}") from exc

        try:
            doc = json.loads(body)
        except ValueError as exc:
            raise StoreUnavailableError(f"s3 key {key}: unreadable document: {exc}") from exc
        if not isinstance(doc, dict):
            raise StoreUnavailableError(f"s3 key {key}: not a JSON object")
        doc["_rev"] = resp["ETag"]
        return doc

    async def put(self, doc: dict[str, Any]) -> PutResult:
        """Conditionally upload *doc*; creates require the key to be absent."""
        doc_id = doc["_id"]
        key = self._key(doc_id)
        body = json.dumps(
            {k: v for k, v in doc.items() if k != "_rev"}, default=str, ensure_ascii=False
        ).encode()
        condition = {"IfMatch": doc["_rev"]} if doc.get("_rev") else {"IfNoneMatch": "*"}
        try:
            async with self._session.client("s3", **self._extra) as s3:
                resp = await s3.put_object(
                    Bucket=self._config.s3_bucket,
                    Key=key,
                    Body=body,
                    ContentType="application/json",
                    **condition,
                )
        except ClientError as exc:
            error = _map_client_error(exc, key)
            if isinstance(error, NotFoundError):
                # IfMatch against a deleted object.
                error = ConflictError(f"s3 key {key} vanished before update")
            raise error from exc
        except BotoCoreError as exc:
            raise StoreUnavailableError(f"s3 key {key}: {exc}") from exc

        logger.debug("Uploaded %s (%d bytes)", key, len(body))
        return PutResult(ok=True, id=doc_id, rev=resp["ETag"])
