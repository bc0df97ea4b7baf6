"""Tests for codetrace.cache.ParseCache."""

from __future__ import annotations

import os
import threading
from unittest.mock import patch

import pytest

from codetrace.cache import ESTIMATED_ENTRY_KB, CacheStats, ParseCache
from codetrace.models import SessionAnalysis


class CountingAnalyzer:
    """Stands in for analyze_file and records how often each path was parsed."""

    def __init__(self):
        self.calls: list = []
        self._lock = threading.Lock()

    def __call__(self, path):
        with self._lock:
            self.calls.append(path)
            n = len(self.calls)
        return SessionAnalysis(extension_name="Codex", user="tester", insights_version=str(n))


def _touch_forward(path, seconds=10):
    st = os.stat(path)
    bumped = st.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(bumped, bumped))


@pytest.fixture
def analyzer():
    return CountingAnalyzer()


@pytest.fixture
def session_files(tmp_path):
    paths = []
    for i in range(4):
        p = tmp_path / f"s{i}.jsonl"
        p.write_text("{}\n")
        paths.append(p)
    return paths


class TestGetOrCompute:
    def test_second_call_is_cached(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        first = cache.get_or_compute(session_files[0])
        second = cache.get_or_compute(session_files[0])
        assert first is second
        assert len(analyzer.calls) == 1

    def test_str_and_path_share_entry(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        cache.get_or_compute(str(session_files[0]))
        cache.get_or_compute(session_files[0])
        assert len(analyzer.calls) == 1

    def test_newer_mtime_recomputes(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        first = cache.get_or_compute(session_files[0])
        _touch_forward(session_files[0])
        second = cache.get_or_compute(session_files[0])
        assert first is not second
        assert len(analyzer.calls) == 2

    def test_older_mtime_still_hits(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        cache.get_or_compute(session_files[0])
        _touch_forward(session_files[0], seconds=-10)
        cache.get_or_compute(session_files[0])
        assert len(analyzer.calls) == 1

    def test_missing_file_raises(self, analyzer, tmp_path):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        with pytest.raises(FileNotFoundError):
            cache.get_or_compute(tmp_path / "gone.jsonl")
        assert analyzer.calls == []

    def test_analyzer_error_not_cached(self, session_files):
        def failing(path):
            raise ValueError("bad file")

        cache = ParseCache(capacity=10, analyzer=failing)
        with pytest.raises(ValueError):
            cache.get_or_compute(session_files[0])
        assert len(cache) == 0

    def test_default_analyzer_parses_real_file(self, claude_jsonl):
        cache = ParseCache(capacity=2)
        assert cache.get_or_compute(claude_jsonl).extension_name == "Claude-Code"


class TestEviction:
    def test_least_recently_used_evicted(self, analyzer, session_files):
        cache = ParseCache(capacity=2, analyzer=analyzer)
        a, b, c = session_files[:3]
        cache.get_or_compute(a)
        cache.get_or_compute(b)
        cache.get_or_compute(a)  # a is now most recent
        cache.get_or_compute(c)
        assert a in cache
        assert b not in cache
        assert c in cache
        assert len(cache) == 2

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            ParseCache(capacity=0)


class TestMaintenance:
    def test_invalidate(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        cache.get_or_compute(session_files[0])
        cache.invalidate(session_files[0])
        cache.invalidate(session_files[1])
        assert session_files[0] not in cache
        cache.get_or_compute(session_files[0])
        assert len(analyzer.calls) == 2

    def test_clear(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        for p in session_files:
            cache.get_or_compute(p)
        cache.clear()
        assert len(cache) == 0
        assert cache.stats() == CacheStats(entry_count=0, estimated_memory_kb=0)

    def test_cleanup_stale(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        for p in session_files:
            cache.get_or_compute(p)
        session_files[1].unlink()
        session_files[3].unlink()
        assert cache.cleanup_stale() == 2
        assert cache.cached_paths() == [session_files[0], session_files[2]]
        assert cache.cleanup_stale() == 0

    def test_cleanup_checks_files_outside_lock(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        for p in session_files:
            cache.get_or_compute(p)
        session_files[1].unlink()

        lock_held = []

        def exists(path):
            lock_held.append(cache._lock.locked())
            if path == session_files[1]:
                # Recreated and re-cached before cleanup takes the lock again.
                session_files[1].write_text("{}\n")
                _touch_forward(session_files[1])
                cache.get_or_compute(session_files[1])
                return False
            return True

        with patch("codetrace.cache.os.path.exists", side_effect=exists):
            assert cache.cleanup_stale() == 0

        assert lock_held and not any(lock_held)
        assert session_files[1] in cache
        assert len(analyzer.calls) == len(session_files) + 1

    def test_stats(self, analyzer, session_files):
        cache = ParseCache(capacity=10, analyzer=analyzer)
        for p in session_files[:3]:
            cache.get_or_compute(p)
        stats = cache.stats()
        assert stats.entry_count == 3
        assert stats.estimated_memory_kb == 3 * ESTIMATED_ENTRY_KB

    def test_contains_rejects_other_types(self, analyzer):
        assert 42 not in ParseCache(analyzer=analyzer)


def test_concurrent_readers_share_results(analyzer, session_files):
    cache = ParseCache(capacity=10, analyzer=analyzer)
    for p in session_files:
        cache.get_or_compute(p)

    results = []

    def worker():
        for p in session_files:
            results.append(cache.get_or_compute(p))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8 * len(session_files)
    assert len(analyzer.calls) == len(session_files)
