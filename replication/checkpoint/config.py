"""Checkpoint configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class CheckpointerConfig:
    """Which endpoints receive checkpoints, and how hard to fight write contention."""

    write_source_checkpoint: bool = True
    write_target_checkpoint: bool = True
    max_conflict_retries: int = 5

    def __post_init__(self) -> None:
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0")

    @classmethod
    def from_env(cls) -> CheckpointerConfig:
        load_dotenv()
        return cls(
            write_source_checkpoint=_env_bool("REPL_WRITE_SOURCE_CHECKPOINT", True),
            write_target_checkpoint=_env_bool("REPL_WRITE_TARGET_CHECKPOINT", True),
            max_conflict_retries=_env_int("REPL_MAX_CONFLICT_RETRIES", 5),
        )


@dataclass(frozen=True)
class S3StoreConfig:
    """S3 (or R2 / MinIO) bucket holding one endpoint's checkpoint documents."""

    s3_bucket: str = field(default_factory=lambda: os.environ.get("REPL_S3_BUCKET", ""))
    s3_region: str = field(default_factory=lambda: os.environ.get("REPL_S3_REGION", "us-east-1"))
    s3_access_key: str = field(default_factory=lambda: os.environ.get("REPL_S3_ACCESS_KEY", ""))
    s3_secret_key: str = field(default_factory=lambda: os.environ.get("REPL_S3_SECRET_KEY", ""))
    s3_endpoint_url: str = field(default_factory=lambda: os.environ.get("REPL_S3_ENDPOINT_URL", ""))
    key_prefix: str = field(default_factory=lambda: os.environ.get("REPL_S3_KEY_PREFIX", "checkpoints/"))
    name: str = "s3"

    @classmethod
    def from_env(cls) -> S3StoreConfig:
        """Create config from environment, raising on missing required vars."""
        load_dotenv()
        cfg = cls()
        if not cfg.s3_bucket:
            raise RuntimeError("REPL_S3_BUCKET env var is required")
        if not cfg.s3_access_key or not cfg.s3_secret_key:
            raise RuntimeError("REPL_S3_ACCESS_KEY and REPL_S3_SECRET_KEY env vars are required")
        return cfg


@dataclass(frozen=True)
class CouchStoreConfig:
    """CouchDB database acting as one replication endpoint."""

    url: str
    database: str
    username: str = ""
    password: str = ""
    timeout_s: float = 10.0

    @property
    def name(self) -> str:
        return self.database

    @classmethod
    def from_env(cls, prefix: str = "REPL_COUCH") -> CouchStoreConfig:
        load_dotenv()
        url = os.environ.get(f"{prefix}_URL", "")
        database = os.environ.get(f"{prefix}_DB", "")
        if not url or not database:
            raise RuntimeError(f"{prefix}_URL and {prefix}_DB env vars are required")
        return cls(
            url=url,
            database=database,
            username=os.environ.get(f"{prefix}_USER", ""),
            password=os.environ.get(f"{prefix}_PASSWORD", ""),
            timeout_s=float(os.environ.get(f"{prefix}_TIMEOUT_S", "10")),
        )
