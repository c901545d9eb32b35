# propsearch/core/cache/search_cache.py
"""
Best-effort on-disk cache for whole search results.

Layout (under base_dir/<vertical>/):
  - <sha256(key)[:32]>.json   serialized SearchResult

Freshness is judged from the file mtime against the TTL given at write time
(stored alongside the payload). Any read/write problem is logged and treated
as a miss; the cache never aborts a search.
"""

from __future__ import annotations

import json
import logging
import time
from hashlib import sha256 as _sha256lib
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from propsearch.core.errors import CacheError
from propsearch.schemas.models import SearchResult

logger = logging.getLogger(__name__)


def _sha256(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8", errors="ignore")
    return _sha256lib(data).hexdigest()


def cache_key(first_query: str, fingerprint: str = "") -> str:
    """
    Key for a request: sha256 of its first provider query (normalized) and,
    when given, a fingerprint of the constraints its verdicts depend on.
    """
    base = " ".join((first_query or "").lower().split())
    return _sha256(f"{base}\n{fingerprint}" if fingerprint else base)


class SearchCache(Protocol):
    def get(self, vertical: str, key: str) -> SearchResult | None: ...

    def set(self, vertical: str, key: str, result: SearchResult, ttl: int) -> None: ...


class NullSearchCache:
    """Cache that never stores anything."""

    def get(self, vertical: str, key: str) -> SearchResult | None:
        return None

    def set(self, vertical: str, key: str, result: SearchResult, ttl: int) -> None:
        return None


class FileSearchCache:
    def __init__(self, base_dir: Path | str, *, clock=time.time) -> None:
        self.base_dir = Path(base_dir)
        self._clock = clock

    def path_for(self, vertical: str, key: str) -> Path:
        safe_vertical = "".join(ch for ch in (vertical or "general") if ch.isalnum() or ch in "_-") or "general"
        return self.base_dir / safe_vertical / f"{_sha256(key)[:32]}.json"

    def _read(self, path: Path) -> tuple[int, SearchResult]:
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
            ttl = int(envelope["ttl"])
            result = SearchResult.model_validate(envelope["result"])
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            raise CacheError(f"unreadable cache entry {path.name}: {e}") from e
        return ttl, result

    def get(self, vertical: str, key: str) -> SearchResult | None:
        path = self.path_for(vertical, key)
        if not path.exists():
            return None
        try:
            age = self._clock() - path.stat().st_mtime
            ttl, result = self._read(path)
        except (OSError, CacheError) as e:
            logger.warning("Search cache read failed, treating as miss: %s", e)
            return None
        if age > ttl:
            logger.debug("Search cache entry expired (%.0fs > %ds)", age, ttl)
            return None
        return result

    def set(self, vertical: str, key: str, result: SearchResult, ttl: int) -> None:
        if ttl <= 0:
            return
        path = self.path_for(vertical, key)
        envelope = {"ttl": int(ttl), "result": result.model_dump(mode="json")}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(envelope, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            logger.warning("Search cache write failed: %s", e)

    def purge(self) -> int:
        """Delete expired or unreadable entries; returns the number removed."""
        if not self.base_dir.exists():
            return 0
        removed = 0
        now = self._clock()
        for path in sorted(self.base_dir.glob("*/*.json")):
            try:
                ttl, _ = self._read(path)
                expired = now - path.stat().st_mtime > ttl
            except (OSError, CacheError):
                expired = True
            if expired:
                try:
                    path.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning("Could not remove cache entry %s: %s", path.name, e)
        return removed


__all__ = ["SearchCache", "FileSearchCache", "NullSearchCache", "cache_key"]
