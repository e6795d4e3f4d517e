"""Tests for configuration loading and replication ids."""

from __future__ import annotations

import pytest

from replication.checkpoint.config import CheckpointerConfig, CouchStoreConfig, S3StoreConfig
from replication.checkpoint.replication_id import generate_replication_id


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr("replication.checkpoint.config.load_dotenv", lambda *a, **k: False)


def test_checkpointer_config_defaults():
    cfg = CheckpointerConfig()
    assert cfg.write_source_checkpoint is True
    assert cfg.write_target_checkpoint is True
    assert cfg.max_conflict_retries == 5


def test_checkpointer_config_from_env(monkeypatch):
    monkeypatch.setenv("REPL_WRITE_SOURCE_CHECKPOINT", "false")
    monkeypatch.setenv("REPL_WRITE_TARGET_CHECKPOINT", "yes")
    monkeypatch.setenv("REPL_MAX_CONFLICT_RETRIES", "9")

    cfg = CheckpointerConfig.from_env()

    assert cfg == CheckpointerConfig(write_source_checkpoint=False, max_conflict_retries=9)


def test_checkpointer_config_rejects_bad_bool(monkeypatch):
    monkeypatch.setenv("REPL_WRITE_SOURCE_CHECKPOINT", "maybe")
    with pytest.raises(ValueError):
        CheckpointerConfig.from_env()


def test_checkpointer_config_rejects_negative_retries():
    with pytest.raises(ValueError):
        CheckpointerConfig(max_conflict_retries=-1)


def test_s3_config_requires_bucket_and_credentials(monkeypatch):
    for var in ("REPL_S3_BUCKET", "REPL_S3_ACCESS_KEY", "REPL_S3_SECRET_KEY"):
        monkeypatch.delenv(var, raising=False)
    with pytest.raises(RuntimeError, match="REPL_S3_BUCKET"):
        S3StoreConfig.from_env()

    monkeypatch.setenv("REPL_S3_BUCKET", "ckpt")
    with pytest.raises(RuntimeError, match="REPL_S3_ACCESS_KEY"):
        S3StoreConfig.from_env()

    monkeypatch.setenv("REPL_S3_ACCESS_KEY", "AK")
    monkeypatch.setenv("REPL_S3_SECRET_KEY", "SK")
    assert S3StoreConfig.from_env().s3_bucket == "ckpt"


def test_couch_config_from_env_with_prefix(monkeypatch):
    monkeypatch.setenv("REPL_TARGET_URL", "http://couch:5984")
    monkeypatch.setenv("REPL_TARGET_DB", "orders")
    monkeypatch.setenv("REPL_TARGET_USER", "admin")

    cfg = CouchStoreConfig.from_env("REPL_TARGET")

    assert (cfg.url, cfg.database, cfg.username, cfg.password) == ("http://couch:5984", "orders", "admin", "")
    assert cfg.name == "orders"


def test_couch_config_requires_url(monkeypatch):
    monkeypatch.delenv("REPL_COUCH_URL", raising=False)
    with pytest.raises(RuntimeError):
        CouchStoreConfig.from_env()


# ---------------------------------------------------------------------------
# Replication ids
# ---------------------------------------------------------------------------


def test_replication_id_is_deterministic():
    a = generate_replication_id("src", "tgt", doc_ids=["a", "b"])
    b = generate_replication_id("src", "tgt", doc_ids=["a", "b"])
    assert a == b
    assert a.startswith("_local/")
    assert "/" not in a[len("_local/"):]
    assert "+" not in a


def test_replication_id_depends_on_endpoints_and_filters():
    base = generate_replication_id("src", "tgt")
    assert generate_replication_id("tgt", "src") != base
    assert generate_replication_id("src", "tgt", filter="ddoc/only_orders") != base
    assert generate_replication_id("src", "tgt", selector={"type": "order"}) != base


def test_replication_id_ignores_query_param_order():
    a = generate_replication_id("s", "t", query_params={"x": 1, "y": 2})
    b = generate_replication_id("s", "t", query_params={"y": 2, "x": 1})
    assert a == b
