"""Parse cache: an LRU of analysis results gated on file modification time.

A cached result is reused only while its recorded mtime is not older than the
file's current mtime. Results are immutable and shared between callers.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from codetrace.models import SessionAnalysis
from codetrace.parser import analyze_file

logger = logging.getLogger("codetrace.cache")

DEFAULT_CAPACITY = 100
ESTIMATED_ENTRY_KB = 50


@dataclass(frozen=True)
class CacheEntry:
    mtime_ns: int
    analysis: SessionAnalysis


@dataclass
class CacheStats:
    entry_count: int = 0
    estimated_memory_kb: int = 0


class ParseCache:
    """Thread-safe, mtime-gated LRU cache of analyzed session files.

    The analyze step runs outside the lock, so two threads racing on the same
    stale file may both recompute it; the last insert wins and both results
    are equivalent.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        analyzer: Callable[[Path], SessionAnalysis] = analyze_file,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._analyzer = analyzer
        self._entries: OrderedDict[Path, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get_or_compute(self, path: str | Path) -> SessionAnalysis:
        path = Path(path)
        mtime_ns = os.stat(path).st_mtime_ns

        with self._lock:
            entry = self._entries.get(path)
            if entry is not None and entry.mtime_ns >= mtime_ns:
                self._entries.move_to_end(path)
                logger.debug("Cache hit for %s", path)
                return entry.analysis

        logger.debug("Cache miss for %s, parsing", path)
        analysis = self._analyzer(path)

        with self._lock:
            self._entries[path] = CacheEntry(mtime_ns=mtime_ns, analysis=analysis)
            self._entries.move_to_end(path)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted %s from parse cache", evicted)

        return analysis

    def invalidate(self, path: str | Path) -> None:
        with self._lock:
            self._entries.pop(Path(path), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_stale(self) -> int:
        """Drop entries whose file no longer exists. Returns how many were dropped."""
        with self._lock:
            snapshot = list(self._entries.items())

        missing = [(path, entry) for path, entry in snapshot if not os.path.exists(path)]

        stale = []
        with self._lock:
            for path, entry in missing:
                # Skip entries replaced while we were checking the filesystem.
                if self._entries.get(path) is entry:
                    del self._entries[path]
                    stale.append(path)
        if stale:
            logger.debug("Dropped %d stale cache entries", len(stale))
        return len(stale)

    def stats(self) -> CacheStats:
        with self._lock:
            count = len(self._entries)
        return CacheStats(entry_count=count, estimated_memory_kb=count * ESTIMATED_ENTRY_KB)

    def cached_paths(self) -> list[Path]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return Path(path) in self._entries
