"""Tests for the content-hash result cache."""

import json

import pytest

from tnprop.pipeline.cache import ResultCache, hash_bytes


@pytest.fixture
def cache(tmp_path):
    return ResultCache(cache_dir=tmp_path, ttl_seconds=3600)


def test_hash_is_sha256_hex():
    digest = hash_bytes(b"%PDF-1.4")
    assert len(digest) == 64
    assert digest == hash_bytes(b"%PDF-1.4")
    assert digest != hash_bytes(b"%PDF-1.5")


def test_round_trip(cache, sample_records):
    key = hash_bytes(b"doc")
    assert cache.get(key) is None
    cache.set(key, sample_records, "ec.pdf")
    assert cache.get(key) == sample_records
    assert cache.has(key)


def test_tamil_text_survives(cache):
    key = hash_bytes(b"tamil")
    records = [{"surveyNumber": "1", "documentNumber": "A", "buyerNameNative": "முருகன்"}]
    cache.set(key, records, "ec.pdf")
    assert cache.get(key) == records


def test_expired_entry_is_a_miss_and_removed(tmp_path, sample_records):
    cache = ResultCache(cache_dir=tmp_path, ttl_seconds=-1)
    key = hash_bytes(b"doc")
    cache.set(key, sample_records, "ec.pdf")
    assert cache.get(key) is None
    assert not (tmp_path / f"{key}.json").exists()


def test_malformed_key_is_a_miss(cache):
    assert cache.get("../../etc/passwd") is None
    # set() swallows the bad key instead of raising
    cache.set("not-a-hash", [], "x.pdf")
    assert list(cache.cache_dir.glob("*.json")) == []


def test_corrupt_entry_is_a_miss(cache):
    key = hash_bytes(b"doc")
    (cache.cache_dir / f"{key}.json").write_text("{not json", encoding="utf-8")
    assert cache.get(key) is None


def test_no_temp_files_left_behind(cache, sample_records):
    cache.set(hash_bytes(b"doc"), sample_records, "ec.pdf")
    assert list(cache.cache_dir.glob("*.tmp")) == []
    entry = json.loads(next(cache.cache_dir.glob("*.json")).read_text(encoding="utf-8"))
    assert entry["label"] == "ec.pdf"


def test_clear_and_stats(cache, sample_records):
    cache.set(hash_bytes(b"a"), sample_records, "a.pdf")
    cache.set(hash_bytes(b"b"), sample_records[:1], "b.pdf")
    stats = cache.stats()
    assert stats["size"] == 2
    assert sorted(e["record_count"] for e in stats["entries"]) == [1, 2]
    assert cache.clear() == 2
    assert cache.stats() == {"size": 0, "entries": []}


def test_cleanup_removes_orphaned_temp_files(cache):
    (cache.cache_dir / "cache_abc.tmp").write_text("partial", encoding="utf-8")
    assert cache.cleanup() == 1
    assert list(cache.cache_dir.glob("*.tmp")) == []
