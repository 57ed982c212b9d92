"""Extraction result cache keyed by a SHA-256 of the uploaded PDF bytes.

One JSON file per document.  Writes are atomic (temp file + os.replace)
so a crash mid-write never leaves a half-written entry behind.  Every
cache failure is logged and treated as a miss: the cache must never be
the reason an upload fails.
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path

from tnprop.config import CACHE_DIR, CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

_HASH_LEN = 64


def hash_bytes(content: bytes) -> str:
    """Content hash used as the cache key."""
    return hashlib.sha256(content).hexdigest()


class ResultCache:
    """Filesystem-backed cache of extracted records."""

    def __init__(self, cache_dir: Path = CACHE_DIR, ttl_seconds: int = CACHE_TTL_SECONDS):
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, file_hash: str) -> Path:
        # Only well-formed hex digests map to files
        if len(file_hash) != _HASH_LEN or any(c not in "0123456789abcdef" for c in file_hash):
            raise ValueError(f"Invalid cache key: {file_hash[:16]!r}")
        return self.cache_dir / f"{file_hash}.json"

    def _is_expired(self, entry: dict) -> bool:
        return time.time() - entry.get("timestamp", 0) > self.ttl_seconds

    def _read(self, path: Path) -> dict | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[CACHE] Unreadable entry {path.name}: {e}")
            return None

    def get(self, file_hash: str) -> list[dict] | None:
        """Return cached records, or None on a miss / expired entry."""
        try:
            path = self._path(file_hash)
        except ValueError as e:
            logger.warning(f"[CACHE] {e}")
            return None
        entry = self._read(path)
        if entry is None:
            return None
        if self._is_expired(entry):
            path.unlink(missing_ok=True)
            return None
        records = entry.get("records", [])
        logger.info(f"[CACHE HIT] {entry.get('label', '?')} ({len(records)} records)")
        return records

    def set(self, file_hash: str, records: list[dict], label: str) -> None:
        """Store records for ``file_hash``. Failures are logged, not raised."""
        entry = {
            "hash": file_hash,
            "records": records,
            "timestamp": time.time(),
            "label": label,
        }
        try:
            path = self._path(file_hash)
            data = json.dumps(entry, ensure_ascii=False, default=str)
            # Write to temp in the same directory so os.replace() is same-device
            fd, tmp_path = tempfile.mkstemp(dir=str(self.cache_dir), suffix=".tmp", prefix="cache_")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                    tmp.write(data)
                os.replace(tmp_path, str(path))
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"[CACHE] Failed to store {label}: {e}")
            return
        logger.info(f"[CACHE SAVE] {label} ({len(records)} records)")

    def has(self, file_hash: str) -> bool:
        return self.get(file_hash) is not None

    def clear(self) -> int:
        """Delete every entry. Returns the number removed."""
        count = 0
        for f in self.cache_dir.glob("*.json"):
            f.unlink(missing_ok=True)
            count += 1
        logger.info(f"[CACHE] Cleared {count} entr{'y' if count == 1 else 'ies'}")
        return count

    def cleanup(self) -> int:
        """Delete expired entries and orphaned temp files."""
        removed = 0
        for f in self.cache_dir.glob("*.tmp"):
            f.unlink(missing_ok=True)
            removed += 1
        for f in self.cache_dir.glob("*.json"):
            entry = self._read(f)
            if entry is None or self._is_expired(entry):
                f.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info(f"[CACHE] Cleanup removed {removed} stale file(s)")
        return removed

    def stats(self) -> dict:
        entries = []
        now = time.time()
        for f in sorted(self.cache_dir.glob("*.json")):
            entry = self._read(f)
            if entry is None or self._is_expired(entry):
                continue
            entries.append({
                "label": entry.get("label", ""),
                "record_count": len(entry.get("records", [])),
                "age_minutes": int((now - entry.get("timestamp", now)) // 60),
            })
        return {"size": len(entries), "entries": entries}
