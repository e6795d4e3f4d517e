"""Deterministic checkpoint ids for replication jobs."""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

from .models import LOCAL_PREFIX


def _encode(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def generate_replication_id(
    source_id: str,
    target_id: str,
    *,
    filter: str | None = None,
    query_params: dict[str, Any] | None = None,
    doc_ids: list[str] | None = None,
    selector: dict[str, Any] | None = None,
) -> str:
    """Name the checkpoint of replicating *source_id* into *target_id*.

    Same endpoints and filter parameters always yield the same id, so a
    restarted job finds the checkpoints of its previous runs.
    """
    raw = "".join([
        source_id,
        target_id,
        filter or "",
        _encode(query_params),
        _encode(doc_ids),
        _encode(selector),
    ])
    digest = base64.b64encode(hashlib.md5(raw.encode()).digest()).decode()
    return LOCAL_PREFIX + digest.replace("/", ".").replace("+", "_")
