"""
File Cache — Remembers the loop findings of PHP files that did not change.

A file is identified by its path together with the SHA-256 digest of its
source, so an edited file misses the cache and is parsed again while an
untouched one reuses its node arena and findings. Parse failures are cached
the same way: resubmitting the same broken file reports the same error.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import Any

from loopguard.config import settings
from loopguard.models.ast_models import ModuleAST
from loopguard.models.rule_models import Finding

CacheKey = tuple[str, str]


@dataclass
class CachedFile:
    """Parsed arena and detector findings stored for one PHP file version."""

    digest: str
    module_ast: ModuleAST
    findings: list[Finding]
    ttl_seconds: int
    stored_at: float = field(default_factory=time.time)

    @property
    def expired(self) -> bool:
        return time.time() - self.stored_at > self.ttl_seconds


class FileCache:
    """Per-process store of analysis results keyed by (path, source digest)."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries: dict[CacheKey, CachedFile] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def digest(source: str) -> str:
        return hashlib.sha256(source.encode("utf-8")).hexdigest()

    def get(self, file_path: str, content: str) -> CachedFile | None:
        """Results for ``file_path`` if this exact source was analyzed within the TTL."""
        key = (file_path, self.digest(content))
        cached = self._entries.get(key)
        if cached is not None and cached.expired:
            del self._entries[key]
            cached = None

        if cached is None:
            self.misses += 1
        else:
            self.hits += 1
        return cached

    def put(
        self,
        file_path: str,
        content: str,
        module_ast: ModuleAST,
        findings: list[Finding],
    ) -> None:
        digest = self.digest(content)
        self._entries[(file_path, digest)] = CachedFile(
            digest=digest,
            module_ast=module_ast,
            findings=findings,
            ttl_seconds=self.ttl_seconds,
        )

    def invalidate(self, file_path: str) -> int:
        """Drop every cached version of ``file_path``; returns how many were dropped."""
        stale = [key for key in self._entries if key[0] == file_path]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        expired = sum(1 for cached in self._entries.values() if cached.expired)
        lookups = self.hits + self.misses
        return {
            "total_entries": len(self._entries),
            "expired_entries": expired,
            "active_entries": len(self._entries) - expired,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
        }
